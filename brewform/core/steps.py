"""安装/测试步骤的占位符展开与顺序执行

步骤先按 shell 规则切分，再逐个参数替换占位符，路径中带空格也不会被拆开。
支持的占位符: {prefix} {bin} {name} {version} {buildpath}
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path

from brewform.core.exceptions import StepError
from brewform.utils.shell import CommandExecutor, CommandResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepContext:
    """步骤执行上下文"""

    name: str
    version: str
    prefix: Path
    buildpath: Path

    @property
    def bin(self) -> Path:
        return self.prefix / "bin"

    def placeholders(self) -> dict[str, str]:
        return {
            "{prefix}": str(self.prefix),
            "{bin}": str(self.bin),
            "{name}": self.name,
            "{version}": self.version,
            "{buildpath}": str(self.buildpath),
        }


def expand_step(step: str, ctx: StepContext) -> list[str]:
    """切分并展开单个步骤"""
    values = ctx.placeholders()
    args = []
    for token in shlex.split(step):
        for key, value in values.items():
            token = token.replace(key, value)
        args.append(token)
    return args


def run_steps(
    steps: tuple[str, ...] | list[str],
    ctx: StepContext,
    executor: CommandExecutor,
    *,
    error_cls: type[StepError],
    timeout: int | None = None,
    label: str = "step",
) -> list[CommandResult]:
    """按顺序执行步骤，第一个非零退出即中止并抛 error_cls"""
    env = {**os.environ, "HOMEBREW_PREFIX": str(ctx.prefix)}
    results = []
    for i, step in enumerate(steps, 1):
        args = expand_step(step, ctx)
        logger.info("  %s %d/%d: %s", label, i, len(steps), shlex.join(args))
        r = executor.execute(
            args, cwd=str(ctx.buildpath), env=env, timeout=timeout,
        )
        results.append(r)
        if not r.success:
            logger.error("  %s 失败 (rc=%d): %s", label, r.returncode, step)
            raise error_cls(step, r.returncode, r.stderr or r.stdout)
    return results
