"""
简单 Prometheus 指标封装

目的：
- 记录优化器调用结果（已优化 / 保留原图 / 失败回退）与耗时
- 统计节省的字节数与并发写入冲突
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

# 注册表便于单元测试重置
registry = CollectorRegistry()

OPTIMIZATION_TOTAL = Counter(
    "asset_optimizer_optimizations_total",
    "优化器调用计数",
    ["media_type", "outcome"],
    registry=registry,
)
OPTIMIZATION_LATENCY = Histogram(
    "asset_optimizer_optimization_seconds",
    "优化器调用耗时",
    ["media_type"],
    registry=registry,
)
BYTES_SAVED = Counter(
    "asset_optimizer_bytes_saved_total",
    "优化节省的字节数",
    ["media_type"],
    registry=registry,
)
COMMIT_CONFLICTS = Counter(
    "asset_optimizer_commit_conflicts_total",
    "提交时遇到的重复 key 冲突次数",
    registry=registry,
)


def record_optimization(
    media_type: str,
    outcome: str,
    duration_seconds: float,
    bytes_saved: int = 0,
) -> None:
    OPTIMIZATION_TOTAL.labels(media_type=media_type, outcome=outcome).inc()
    OPTIMIZATION_LATENCY.labels(media_type=media_type).observe(duration_seconds)
    if bytes_saved > 0:
        BYTES_SAVED.labels(media_type=media_type).inc(bytes_saved)


def record_commit_conflicts(count: int) -> None:
    if count > 0:
        COMMIT_CONFLICTS.inc(count)


def export_metrics() -> bytes:
    return generate_latest(registry)
