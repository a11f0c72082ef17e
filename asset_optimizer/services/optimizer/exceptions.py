from __future__ import annotations


class OptimizerError(Exception):
    """优化插件异常基类"""


class OptimizerConfigurationError(OptimizerError):
    """优化器配置无效（缺少可执行文件、模板语法错误等），构造阶段即失败"""


class OptimizationFailed(OptimizerError):
    """外部优化器没有产出文件；可恢复，调用方回退到原始资源"""

    def __init__(self, command: str, exit_code: int | None, output: str):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        status = "timeout" if exit_code is None else str(exit_code)
        super().__init__(
            f"Optimization not successful for command: {command}\n"
            f"Exit status code: {status}\n"
            f"Output:\n{output}"
        )


class DuplicateKeyConflict(OptimizerError):
    """并发工作单元已写入相同 key 的映射；视为已优化"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Optimized artifact relation already exists: key={key}")


class StorageCommitFailed(OptimizerError):
    """持久化事务失败，当前工作单元应视为中止"""


__all__ = [
    "DuplicateKeyConflict",
    "OptimizationFailed",
    "OptimizerConfigurationError",
    "OptimizerError",
    "StorageCommitFailed",
]
