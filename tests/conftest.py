"""
测试全局配置

- 使用 sqlite 内存库 + StaticPool，每个测试独立建表
- 外部优化器用 sys.executable 执行 tmp_path 下的小脚本代替
"""
from __future__ import annotations

import hashlib
import os
import shlex
import sys
import textwrap
import uuid
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FILE_PATH", "")

from asset_optimizer.core.database import enable_sqlite_savepoints  # noqa: E402
from asset_optimizer.models import Base, StoredArtifact  # noqa: E402
from asset_optimizer.services.optimizer import (  # noqa: E402
    ImageOptimizerTarget,
    OptimizedArtifactStore,
    OptimizerService,
    TargetInstanceRegistry,
)
from asset_optimizer.services.storage import AssetManager, FileSystemTarget  # noqa: E402

PERSISTENT_COLLECTION = "persistent"
OPTIMIZED_COLLECTION = "optimized"

_SCRIPTS = {
    "halve.py": """
        import sys
        with open(sys.argv[1], "rb") as src:
            data = src.read()
        with open(sys.argv[2], "wb") as dst:
            dst.write(data[: len(data) // 2])
    """,
    "grow.py": """
        import sys
        with open(sys.argv[1], "rb") as src:
            data = src.read()
        with open(sys.argv[2], "wb") as dst:
            dst.write(data + b"padding")
    """,
    "fail.py": """
        import sys
        print("cannot read input")
        sys.exit(1)
    """,
    "halve_then_fail.py": """
        import sys
        with open(sys.argv[1], "rb") as src:
            data = src.read()
        with open(sys.argv[2], "wb") as dst:
            dst.write(data[: len(data) // 2])
        sys.exit(3)
    """,
    "record_args.py": """
        import shutil
        import sys
        with open(sys.argv[3], "w") as log:
            log.write(sys.argv[1] + "\\n" + sys.argv[2])
        shutil.copyfile(sys.argv[1], sys.argv[2])
    """,
    "sleep.py": """
        import time
        time.sleep(30)
    """,
}


@pytest.fixture()
def session_factory():
    engine = enable_sqlite_savepoints(
        create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    try:
        yield SessionLocal
    finally:
        engine.dispose()


@pytest.fixture()
def session(session_factory):
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def scripts(tmp_path) -> dict[str, Path]:
    script_dir = tmp_path / "scripts"
    script_dir.mkdir()
    paths = {}
    for name, body in _SCRIPTS.items():
        path = script_dir / name
        path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
        paths[name] = path
    return paths


def _python_rule(script: Path, extra_args: str = "", outfile_extension: str = "") -> dict:
    arguments = f"{shlex.quote(str(script))} {{{{ originalPath }}}} {{{{ optimizedPath }}}}"
    if extra_args:
        arguments = f"{arguments} {extra_args}"
    rule = {"binaryPath": sys.executable, "arguments": arguments}
    if outfile_extension:
        rule["outfileExtension"] = outfile_extension
    return rule


@pytest.fixture()
def python_rule():
    """用当前解释器执行脚本的优化器配置"""
    return _python_rule


@pytest.fixture()
def asset_manager(tmp_path, session) -> AssetManager:
    manager = AssetManager(tmp_path / "storage", session=session)
    manager.register_collection(
        OPTIMIZED_COLLECTION,
        FileSystemTarget(
            "optimizedTarget",
            {"path": str(tmp_path / "public" / "optimized"), "baseUri": "https://cdn.test/optimized"},
        ),
    )
    return manager


@pytest.fixture()
def optimizer_service(asset_manager, tmp_path) -> OptimizerService:
    return OptimizerService(asset_manager, temporary_directory=tmp_path / "tmp", timeout_seconds=10)


@pytest.fixture()
def registry() -> TargetInstanceRegistry:
    return TargetInstanceRegistry()


@pytest.fixture()
def make_target(session, asset_manager, optimizer_service, registry, tmp_path):
    def _make(media_types: dict, **kwargs) -> ImageOptimizerTarget:
        target = ImageOptimizerTarget(
            "optimizerTarget",
            {
                "mediaTypes": media_types,
                "targetClass": FileSystemTarget,
                "targetOptions": {"path": str(tmp_path / "public" / "web"), "baseUri": "https://cdn.test/web"},
                "optimizedCollection": OPTIMIZED_COLLECTION,
            },
            store=kwargs.pop("store", None) or OptimizedArtifactStore(session),
            optimizer_service=optimizer_service,
            asset_manager=asset_manager,
            registry=registry,
            **kwargs,
        )
        asset_manager.register_collection(PERSISTENT_COLLECTION, target)
        return target

    return _make


@pytest.fixture()
def make_original(session, tmp_path):
    """直接写入一条原始资源记录，sha1 可以指定（便于构造固定 key）"""
    blob_dir = tmp_path / "originals"
    blob_dir.mkdir()

    def _make(
        content: bytes,
        filename: str,
        media_type: str,
        *,
        sha1: str | None = None,
        persist: bool = True,
    ) -> StoredArtifact:
        object_key = f"{PERSISTENT_COLLECTION}/{uuid.uuid4().hex}"
        path = blob_dir / object_key.replace("/", "_")
        path.write_bytes(content)
        artifact = StoredArtifact(
            id=uuid.uuid4(),
            sha1=sha1 or hashlib.sha1(content).hexdigest(),
            filename=filename,
            media_type=media_type,
            size_bytes=len(content),
            collection_name=PERSISTENT_COLLECTION,
            object_key=object_key,
            storage_path=str(path),
        )
        if persist:
            session.add(artifact)
            session.commit()
        return artifact

    return _make
