from __future__ import annotations

import importlib
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class OptimizerRuleOptions(BaseModel):
    """单个媒体类型的优化器配置（兼容 camelCase 键名）"""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    binary_path: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("binaryPath", "binary_path"),
    )
    arguments: str = Field(
        ...,
        validation_alias=AliasChoices("arguments", "argumentsExpression", "arguments_expression"),
        description="Jinja2 模板，可用变量：originalPath / optimizedPath（已做 shell 转义）",
    )
    outfile_extension: str = Field(
        default="",
        validation_alias=AliasChoices("outfileExtension", "outfile_extension"),
        description="覆盖输出文件扩展名，例如 JPEG 转 PNG 的优化器",
    )

    @field_validator("binary_path")
    @classmethod
    def _strip_binary_path(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("binaryPath must not be blank")
        return value

    @field_validator("outfile_extension")
    @classmethod
    def _normalize_extension(cls, value: str | None) -> str:
        ext = str(value or "").strip().lstrip(".")
        if "/" in ext or "\\" in ext:
            raise ValueError("outfileExtension must be a bare extension")
        return ext


class OptimizerTargetOptions(BaseModel):
    """ImageOptimizerTarget 构造参数"""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    media_types: dict[str, OptimizerRuleOptions | None] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("mediaTypes", "media_types"),
    )
    target_class: Any = Field(
        ...,
        validation_alias=AliasChoices("targetClass", "target_class"),
        description="被包装的真实 Target 类，或其点号导入路径",
    )
    target_options: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("targetOptions", "target_options"),
    )
    optimized_collection: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("optimizedCollection", "optimized_collection"),
    )

    @field_validator("target_class", mode="before")
    @classmethod
    def _resolve_target_class(cls, value: Any) -> type:
        if isinstance(value, str):
            module_name, _, attr = value.rpartition(".")
            if not module_name or not attr:
                raise ValueError(f"invalid targetClass path: {value!r}")
            try:
                module = importlib.import_module(module_name)
                value = getattr(module, attr)
            except (ImportError, AttributeError) as exc:
                raise ValueError(f"cannot import targetClass {value!r}: {exc}") from exc
        if not isinstance(value, type):
            raise ValueError("targetClass must be a class")
        return value


__all__ = ["OptimizerRuleOptions", "OptimizerTargetOptions"]
