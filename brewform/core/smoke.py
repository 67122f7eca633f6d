"""安装后冒烟测试

在正式 keg 上执行 test 步骤；失败只报告，不回滚安装。
"""

from __future__ import annotations

import logging
from pathlib import Path

from brewform.core.exceptions import TestStepError
from brewform.core.models import PackageDescriptor
from brewform.core.steps import StepContext, run_steps
from brewform.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)


class SmokeTestRunner:
    """冒烟测试执行器"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        step_timeout: int | None = None,
    ) -> None:
        if step_timeout is None:
            from brewform.core.config import get_config
            step_timeout = get_config().step_timeout
        self.executor = executor or get_executor()
        self.step_timeout = step_timeout

    def run(self, descriptor: PackageDescriptor, keg: Path) -> list[CommandResult]:
        """执行全部测试步骤

        Raises:
            TestStepError: 任一步骤非零退出
        """
        if not descriptor.test_steps:
            logger.warning("%s 未定义测试步骤，跳过冒烟测试", descriptor.name)
            return []
        ctx = StepContext(
            name=descriptor.name, version=descriptor.version,
            prefix=keg, buildpath=keg,
        )
        results = run_steps(
            descriptor.test_steps, ctx, self.executor,
            error_cls=TestStepError, timeout=self.step_timeout, label="test",
        )
        logger.info("冒烟测试通过: %s@%s", descriptor.name, descriptor.version)
        return results
