"""
优化器配置与规则表

- OptimizerConfiguration：单个媒体类型的外部工具调用模板，构造后不可变
- OptimizerRuleTable：mediaType -> OptimizerConfiguration，值为 null 的条目表示不优化
"""

from __future__ import annotations

import os
import shlex
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jinja2 import Environment, StrictUndefined, Template, TemplateError
from pydantic import ValidationError

from asset_optimizer.schemas.optimizer import OptimizerRuleOptions

from .exceptions import OptimizerConfigurationError

# 命令行不是 HTML，不做自动转义；路径转义在上下文里完成
jinja_env = Environment(
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)

_PROBE_CONTEXT = {
    "originalPath": shlex.quote("/tmp/OptimizerOriginal-probe.png"),
    "optimizedPath": shlex.quote("/tmp/OptimizerOptimized-probe.png"),
}


def _binary_exists(binary_path: str) -> bool:
    if os.sep in binary_path or (os.altsep and os.altsep in binary_path):
        path = Path(binary_path)
        return path.is_file() and os.access(path, os.X_OK)
    return shutil.which(binary_path) is not None


@dataclass(frozen=True)
class OptimizerConfiguration:
    """A plain object holding the configuration of one optimizer."""

    media_type: str
    binary_path: str
    arguments_expression: str
    outfile_extension: str = ""
    verify_binary: bool = field(default=True, repr=False, compare=False)
    _template: Template = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.binary_path:
            raise OptimizerConfigurationError(f"[{self.media_type}] binaryPath is empty")
        if self.verify_binary and not _binary_exists(self.binary_path):
            raise OptimizerConfigurationError(
                f"[{self.media_type}] optimizer binary not found: {self.binary_path}"
            )
        try:
            template = jinja_env.from_string(self.arguments_expression)
            template.render(**_PROBE_CONTEXT)
        except TemplateError as exc:
            raise OptimizerConfigurationError(
                f"[{self.media_type}] invalid arguments template: {exc}"
            ) from exc
        object.__setattr__(self, "_template", template)

    @classmethod
    def from_options(
        cls,
        media_type: str,
        options: OptimizerRuleOptions | Mapping[str, Any],
        *,
        verify_binary: bool = True,
    ) -> "OptimizerConfiguration":
        if not isinstance(options, OptimizerRuleOptions):
            try:
                options = OptimizerRuleOptions.model_validate(options)
            except ValidationError as exc:
                raise OptimizerConfigurationError(f"[{media_type}] {exc}") from exc
        return cls(
            media_type=media_type,
            binary_path=options.binary_path,
            arguments_expression=options.arguments,
            outfile_extension=options.outfile_extension,
            verify_binary=verify_binary,
        )

    def get_arguments(self, context_variables: Mapping[str, str]) -> str:
        return self._template.render(**context_variables).strip()

    def get_prepared_command_string(self, context_variables: Mapping[str, str]) -> str:
        """结果可直接交给 shell 执行"""
        arguments = self.get_arguments(context_variables)
        binary = shlex.quote(self.binary_path)
        return f"{binary} {arguments}" if arguments else binary

    def build_command(self, original_path: str | os.PathLike, optimized_path: str | os.PathLike) -> str:
        return self.get_prepared_command_string(
            {
                "originalPath": shlex.quote(os.fspath(original_path)),
                "optimizedPath": shlex.quote(os.fspath(optimized_path)),
            }
        )


class OptimizerRuleTable:
    """mediaType -> OptimizerConfiguration 的只读映射"""

    def __init__(self, rules: Mapping[str, OptimizerConfiguration] | None = None):
        self._rules: Mapping[str, OptimizerConfiguration] = MappingProxyType(dict(rules or {}))

    @classmethod
    def from_options(
        cls,
        raw_options: Mapping[str, OptimizerRuleOptions | Mapping[str, Any] | None],
        *,
        verify_binaries: bool = True,
    ) -> "OptimizerRuleTable":
        rules: dict[str, OptimizerConfiguration] = {}
        for media_type, options in (raw_options or {}).items():
            if options is None:
                continue
            rules[media_type] = OptimizerConfiguration.from_options(
                media_type, options, verify_binary=verify_binaries
            )
        return cls(rules)

    def rule_for(self, media_type: str | None) -> OptimizerConfiguration | None:
        if not media_type:
            return None
        return self._rules.get(media_type)

    @property
    def media_types(self) -> list[str]:
        return sorted(self._rules)

    def __contains__(self, media_type: object) -> bool:
        return media_type in self._rules

    def __len__(self) -> int:
        return len(self._rules)


__all__ = ["OptimizerConfiguration", "OptimizerRuleTable", "jinja_env"]
