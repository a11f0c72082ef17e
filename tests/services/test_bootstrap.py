import sys

from asset_optimizer.core.config import settings
from asset_optimizer.services import bootstrap
from asset_optimizer.services.optimizer import ImageOptimizerTarget, TargetInstanceRegistry


def test_create_optimizer_target_from_settings(session, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ASSET_LOCAL_DIR", str(tmp_path / "storage"))
    monkeypatch.setattr(settings, "ASSET_PUBLIC_DIR", str(tmp_path / "public"))
    monkeypatch.setattr(settings, "ASSET_PUBLIC_BASE_URL", "https://cdn.test/_Resources")
    monkeypatch.setattr(
        settings,
        "OPTIMIZER_MEDIA_TYPES",
        {
            "image/png": {"binaryPath": sys.executable, "arguments": "-c pass"},
            "image/gif": None,
        },
    )
    registry = TargetInstanceRegistry()

    target = bootstrap.create_optimizer_target(session, registry=registry)

    assert isinstance(target, ImageOptimizerTarget)
    assert target.get_name() == bootstrap.DEFAULT_TARGET_NAME
    assert registry.get_registered_instances() == [target]
    assert target.optimizer_configurations.media_types == ["image/png"]
    assert target.asset_manager.get_target(settings.ASSET_PERSISTENT_COLLECTION) is target
    assert target.get_public_static_resource_uri("x.css") == "https://cdn.test/_Resources/Static/x.css"
    optimized_target = target.asset_manager.get_target(settings.OPTIMIZER_COLLECTION)
    assert optimized_target.base_uri == f"https://cdn.test/_Resources/{settings.OPTIMIZER_COLLECTION}"
