"""
原始资源身份标识（ContentKey）

同样的字节内容换一个文件名视为不同资源：优化规则与输出扩展名都依赖文件名/媒体类型。
只使用存储层已经算好的 SHA-1，不重新读取文件内容。
"""

from __future__ import annotations

from hashlib import sha256

_SEPARATOR = "|"


def compute_content_key(sha1: str, filename: str) -> str:
    """根据内容哈希与文件名计算稳定的 64 位十六进制 key"""
    if not sha1:
        raise ValueError("sha1 must not be empty")
    payload = f"{sha1}{_SEPARATOR}{filename or ''}"
    return sha256(payload.encode("utf-8")).hexdigest()


__all__ = ["compute_content_key"]
