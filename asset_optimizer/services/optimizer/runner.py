"""
Service to optimize file streams and return optimized artifacts
"""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from asset_optimizer.core.config import settings
from asset_optimizer.core.logging import logger
from asset_optimizer.core.metrics import record_optimization
from asset_optimizer.models.stored_artifact import StoredArtifact

from .configuration import OptimizerConfiguration
from .exceptions import OptimizationFailed
from .types import ArtifactImporter

_ORIGINAL_PREFIX = "OptimizerOriginal-"


@dataclass(frozen=True)
class CommandResult:
    exit_code: int | None
    output: str


class OptimizerService:
    """同步调用外部优化器，并导入原图与优化结果中较小的一个"""

    def __init__(
        self,
        asset_manager: ArtifactImporter,
        *,
        temporary_directory: str | Path | None = None,
        timeout_seconds: float | None = None,
    ):
        self.asset_manager = asset_manager
        self.temporary_directory = Path(
            str(temporary_directory or settings.OPTIMIZER_TEMP_DIR or tempfile.gettempdir())
        )
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.OPTIMIZER_TIMEOUT_SECONDS

    def optimize(
        self,
        stream: BinaryIO,
        filename: str,
        media_type: str,
        configuration: OptimizerConfiguration,
        collection_name: str,
    ) -> StoredArtifact:
        """
        把 stream 的内容交给外部优化器，返回导入到 collection_name 的产物

        Raises:
            OptimizationFailed: 优化器没有在目标路径写出文件（含超时）
            OSError: 临时文件写入失败等基础设施错误，原样抛出
        """
        extension = Path(filename).suffix.lstrip(".")
        out_extension = configuration.outfile_extension or extension
        self.temporary_directory.mkdir(parents=True, exist_ok=True)
        # mkstemp 以 O_EXCL 创建原图文件，随机段因此唯一，优化结果沿用同一随机段
        fd, name = tempfile.mkstemp(
            prefix=_ORIGINAL_PREFIX,
            suffix=f".{extension}" if extension else "",
            dir=self.temporary_directory,
        )
        original_path = Path(name)
        random_string = original_path.name[len(_ORIGINAL_PREFIX) :]
        if extension:
            random_string = random_string[: -len(extension) - 1]
        optimized_path = self._temporary_path(f"OptimizerOptimized-{random_string}", out_extension)

        started = time.perf_counter()
        try:
            with os.fdopen(fd, "wb") as original_file:
                shutil.copyfileobj(stream, original_file)
            # 优化器只能写出新文件，残留的同名结果不能当作本次输出
            optimized_path.unlink(missing_ok=True)

            command = configuration.build_command(original_path, optimized_path)
            result = self._execute(command)

            if result.exit_code is None or not optimized_path.is_file():
                record_optimization(media_type, "failed", time.perf_counter() - started)
                raise OptimizationFailed(command, result.exit_code, result.output)

            original_size = original_path.stat().st_size
            optimized_size = optimized_path.stat().st_size
            # 体积相同时保留原图
            if original_size <= optimized_size:
                best_path, outcome = original_path, "kept_original"
            else:
                best_path, outcome = optimized_path, "optimized"

            artifact = self.asset_manager.import_artifact(
                str(best_path),
                collection_name,
                filename=filename,
                media_type=media_type,
            )
            record_optimization(
                media_type,
                outcome,
                time.perf_counter() - started,
                bytes_saved=max(0, original_size - optimized_size),
            )
            logger.info(
                "optimization_finished filename={} outcome={} original_size={} optimized_size={}",
                filename,
                outcome,
                original_size,
                optimized_size,
            )
            return artifact
        finally:
            original_path.unlink(missing_ok=True)
            optimized_path.unlink(missing_ok=True)

    def _temporary_path(self, basename: str, extension: str) -> Path:
        filename = f"{basename}.{extension}" if extension else basename
        return self.temporary_directory / filename

    def _execute(self, command: str) -> CommandResult:
        logger.debug("optimizer_command command={}", command)
        # 独立进程组，超时时连同 shell 启动的子进程一起结束
        with subprocess.Popen(
            command,
            shell=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=True,
        ) as process:
            try:
                output, _ = process.communicate(timeout=self.timeout_seconds)
            except subprocess.TimeoutExpired:
                try:
                    os.killpg(process.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass
                output, _ = process.communicate()
                logger.warning(
                    "optimizer_timeout command={} timeout={}s", command, self.timeout_seconds
                )
                return CommandResult(exit_code=None, output=(output or "").rstrip("\n"))
        return CommandResult(exit_code=process.returncode, output=(output or "").rstrip("\n"))


__all__ = ["CommandResult", "OptimizerService"]
