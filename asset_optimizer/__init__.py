"""发布时资源优化插件：调用外部优化器并缓存更小的结果。"""

__version__ = "0.1.0"
