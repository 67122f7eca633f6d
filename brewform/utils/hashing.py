"""SHA-256 计算工具"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

CHUNK_SIZE = 8192

_SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def sha256_file(path: str | Path) -> str:
    """流式计算文件的 sha256 十六进制摘要"""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def is_sha256_hex(value: str) -> bool:
    """是否为 64 位十六进制摘要（占位符如 REPLACE_WITH_ACTUAL_SHA256 返回 False）"""
    return bool(_SHA256_RE.match(value))


def digests_equal(expected: str, actual: str) -> bool:
    return expected.strip().lower() == actual.strip().lower()
