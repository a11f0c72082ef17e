import os

import pytest
from sqlalchemy import select

from asset_optimizer.models import OptimizedArtifactRelation, StoredArtifact
from asset_optimizer.services.optimizer import ResourceRemovalListener
from asset_optimizer.utils.content_key import compute_content_key


@pytest.fixture()
def optimized_logo(make_target, make_original, asset_manager, scripts, python_rule, session):
    target = make_target({"image/png": python_rule(scripts["halve.py"])})
    logo = make_original(b"p" * 1000, "logo.png", "image/png", sha1="abc123")
    target.publish_resource(logo, asset_manager.get_collection("persistent"))
    target.persist()
    relation = session.get(OptimizedArtifactRelation, compute_content_key("abc123", "logo.png"))
    return logo, relation


def _relations(session):
    return session.execute(select(OptimizedArtifactRelation)).scalars().all()


def test_two_notifications_produce_one_removal(optimized_logo, session):
    logo, relation = optimized_logo
    listener = ResourceRemovalListener(session)

    assert listener.on_original_removed(logo) is True
    assert listener.on_original_removed(logo) is False

    deleted = [obj for obj in session.deleted if isinstance(obj, OptimizedArtifactRelation)]
    assert deleted == [relation]
    session.commit()
    assert _relations(session) == []


def test_unrelated_resource_is_ignored(optimized_logo, make_original, session):
    listener = ResourceRemovalListener(session)
    other = make_original(b"q" * 10, "other.png", "image/png")

    assert listener.on_original_removed(other) is False
    assert len(_relations(session)) == 1


def test_deleting_original_removes_relation_and_blob(optimized_logo, asset_manager, session):
    logo, relation = optimized_logo
    optimized = relation.optimized_artifact
    listener = ResourceRemovalListener(session, asset_manager=asset_manager).install()

    session.delete(logo)
    session.commit()

    assert _relations(session) == []
    assert session.get(StoredArtifact, optimized.id) is None
    assert not os.path.exists(optimized.storage_path)
    listener.uninstall()


def test_deleting_duplicate_originals_in_one_flush(optimized_logo, make_original, asset_manager, session):
    logo, _ = optimized_logo
    # 同一内容与文件名的第二条记录，对应同一个映射
    twin = make_original(b"p" * 1000, "logo.png", "image/png", sha1="abc123")
    listener = ResourceRemovalListener(session, asset_manager=asset_manager).install()

    session.delete(logo)
    session.delete(twin)
    session.commit()

    assert _relations(session) == []
    listener.uninstall()


def test_deleting_one_of_two_twin_originals_keeps_relation(optimized_logo, make_original, asset_manager, session):
    logo, relation = optimized_logo
    twin = make_original(b"p" * 1000, "logo.png", "image/png", sha1="abc123")
    optimized = relation.optimized_artifact
    listener = ResourceRemovalListener(session, asset_manager=asset_manager).install()

    session.delete(logo)
    session.commit()

    assert _relations(session) == [relation]
    assert os.path.exists(optimized.storage_path)

    # 最后一条同身份记录删除后映射才随之删除
    session.delete(twin)
    session.commit()

    assert _relations(session) == []
    assert not os.path.exists(optimized.storage_path)
    listener.uninstall()


def test_deleting_optimized_artifact_removes_relation(optimized_logo, session):
    _, relation = optimized_logo
    listener = ResourceRemovalListener(session).install()

    session.delete(relation.optimized_artifact)
    session.commit()

    assert _relations(session) == []
    listener.uninstall()


def test_seen_keys_reset_at_unit_boundary(optimized_logo, session):
    logo, _ = optimized_logo
    listener = ResourceRemovalListener(session).install()

    assert listener.on_original_removed(logo) is True
    session.rollback()

    assert listener.on_original_removed(logo) is True
    session.commit()
    assert _relations(session) == []
    listener.uninstall()


def test_unpublish_and_listener_in_same_flush(optimized_logo, make_target, session):
    logo, relation = optimized_logo
    listener = ResourceRemovalListener(session).install()
    target = make_target({"image/png": {"binaryPath": "true", "arguments": ""}}, verify_binaries=False)

    target.unpublish_resource(logo)
    session.delete(logo)
    result = target.persist()

    assert result.removed_artifacts == [relation.optimized_artifact]
    assert _relations(session) == []
    listener.uninstall()
