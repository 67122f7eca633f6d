"""brewform 日志配置

普通文本和结构化 JSON 两种输出格式。安装管线在日志记录上附带
formula / version / stage 上下文（通过 extra），两种格式都会带出。

    logger.info("开始下载", extra=log_context(descriptor, Stage.FETCH))
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# 管线日志可携带的上下文字段
CONTEXT_FIELDS = ("formula", "version", "stage")


def log_context(descriptor: Any = None, stage: Any = None) -> dict[str, str]:
    """构造 extra 上下文；descriptor 需有 name/version，stage 可为 Stage 枚举"""
    ctx: dict[str, str] = {}
    if descriptor is not None:
        ctx["formula"] = descriptor.name
        ctx["version"] = descriptor.version
    if stage is not None:
        ctx["stage"] = getattr(stage, "value", str(stage))
    return ctx


def _context_of(record: logging.LogRecord) -> dict[str, str]:
    return {
        key: getattr(record, key) for key in CONTEXT_FIELDS
        if getattr(record, key, None)
    }


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2026-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "brewform.core.pipeline",
            "message": "...",
            "module": "pipeline",
            "function": "_stage",
            "line": 96,
            "formula": "brewup", "version": "0.1.0", "stage": "fetch",
            "exception": "traceback..."
        }

    上下文字段和 exception 只在存在时输出。
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            # record.created 是事件发生时间，不是格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(_context_of(record))
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """人类可读格式，有管线上下文时追加 [brewup@0.1.0 fetch]"""

    def __init__(self) -> None:
        super().__init__("%(asctime)s [%(levelname)-7s] %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        ctx = _context_of(record)
        if not ctx:
            return text
        tag = ctx.get("formula", "")
        if "version" in ctx:
            tag += f"@{ctx['version']}"
        if "stage" in ctx:
            tag = f"{tag} {ctx['stage']}".strip()
        first, sep, rest = text.partition("\n")
        return f"{first} [{tag}]{sep}{rest}"


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: True 时输出 JSON（适用于 CI），否则输出人类可读格式

    说明:
        - 输出到 stderr，stdout 留给命令结果
        - 重复调用会先清理已有 handlers，避免重复输出
    """
    root = logging.getLogger()
    reset_logging()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else ConsoleFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器上已注册的全部 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
