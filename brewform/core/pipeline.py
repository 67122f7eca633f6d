"""安装管线（Observer 模式）

线性执行 Resolve -> Fetch -> Verify -> Install -> Test：
- 前四个阶段任一失败即终止，结论为 failed，并记录失败阶段
- Test 失败不回滚，结论为 installed_verification_failed
- dry_run 只做 Resolve，返回将要执行的步骤

通过 subscribe() 注册观察者钩子（通知、审计等），钩子异常只记日志，
不影响管线结论。

用法:
    pipeline = InstallPipeline()
    pipeline.subscribe(my_hook)
    report = pipeline.run(descriptor, host=detect_host())
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from brewform.core.exceptions import BrewformError
from brewform.core.fetcher import ArtifactFetcher
from brewform.core.installer import InstallExecutor
from brewform.core.models import (
    HostPlatform,
    InstallReport,
    Outcome,
    PackageDescriptor,
    Stage,
    StageResult,
)
from brewform.core.resolver import resolve_variant
from brewform.core.smoke import SmokeTestRunner
from brewform.utils.logger import log_context

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineHook(ABC):
    """管线观察者钩子基类，实现 on_report 即可接入管线"""

    def on_stage(self, report: InstallReport, result: StageResult) -> None:
        """每个阶段结束时调用（默认不处理）"""

    @abstractmethod
    def on_report(self, report: InstallReport) -> None:
        """管线结束时接收最终报告"""


class _StageFailed(Exception):
    """内部信号：阶段失败，终止管线"""


class InstallPipeline:
    """formula 安装管线"""

    def __init__(
        self,
        fetcher: ArtifactFetcher | None = None,
        installer: InstallExecutor | None = None,
        smoke: SmokeTestRunner | None = None,
    ) -> None:
        self.fetcher = fetcher or ArtifactFetcher()
        self.installer = installer or InstallExecutor()
        self.smoke = smoke or SmokeTestRunner(executor=self.installer.executor)
        self._hooks: list[PipelineHook] = []

    def subscribe(self, hook: PipelineHook) -> None:
        """注册观察者钩子"""
        self._hooks.append(hook)

    def _notify(self, method: str, *args: object) -> None:
        for hook in self._hooks:
            try:
                getattr(hook, method)(*args)
            except Exception:  # noqa: BLE001 - 钩子异常不影响安装报告
                logger.exception("管线钩子执行失败: %s", type(hook).__name__)

    def _stage(self, report: InstallReport, stage: Stage, fn: Callable[[], T]) -> T:
        """执行单个阶段并记录结果；BrewformError 转为阶段失败"""
        start = time.monotonic()
        try:
            value = fn()
        except BrewformError as e:
            result = StageResult(
                stage=stage, ok=False, message=str(e),
                duration=time.monotonic() - start, error_code=e.code,
            )
            report.stages.append(result)
            logger.error(
                "阶段 %s 失败 [%s]: %s", stage.value, e.code, e,
                extra=log_context(report, stage),
            )
            self._notify("on_stage", report, result)
            raise _StageFailed from e
        result = StageResult(
            stage=stage, ok=True, duration=time.monotonic() - start,
        )
        report.stages.append(result)
        logger.debug(
            "阶段 %s 完成 (%.2fs)", stage.value, result.duration,
            extra=log_context(report, stage),
        )
        self._notify("on_stage", report, result)
        return value

    def run(
        self,
        descriptor: PackageDescriptor,
        host: HostPlatform,
        *,
        dry_run: bool = False,
        skip_test: bool = False,
    ) -> InstallReport:
        """执行完整管线，返回报告（阶段失败不抛异常，体现在报告里）"""
        report = InstallReport(name=descriptor.name, version=descriptor.version)
        logger.info(
            "开始安装 %s@%s (平台 %s)", descriptor.name, descriptor.version, host,
            extra=log_context(descriptor),
        )

        try:
            variant = self._stage(
                report, Stage.RESOLVE,
                lambda: resolve_variant(descriptor.sources, host),
            )
            report.variant = variant

            if dry_run:
                report.artifact = str(self.fetcher.artifact_path(descriptor, variant))
                report.prefix = str(self.installer.keg_path(descriptor))
                report.planned_steps = [
                    f"download {variant.url}",
                    f"verify sha256 {variant.sha256}",
                ]
                if variant.build_dependency:
                    report.planned_steps.append(
                        f"require build dependency {variant.build_dependency}",
                    )
                report.planned_steps.extend(
                    f"install: {s}" for s in descriptor.install_steps
                )
                report.planned_steps.extend(
                    f"test: {s}" for s in descriptor.test_steps
                )
                report.outcome = Outcome.PLANNED
                return self._finish(report)

            artifact = self._stage(
                report, Stage.FETCH,
                lambda: self.fetcher.download(descriptor, variant),
            )
            report.artifact = str(artifact)
            self._stage(
                report, Stage.VERIFY,
                lambda: self.fetcher.verify(artifact, variant.sha256),
            )
            keg: Path = self._stage(
                report, Stage.INSTALL,
                lambda: self.installer.install(descriptor, variant, artifact),
            )
            report.prefix = str(keg)
        except _StageFailed:
            report.outcome = Outcome.FAILED
            return self._finish(report)

        if skip_test:
            report.outcome = Outcome.INSTALLED
            return self._finish(report)

        try:
            self._stage(report, Stage.TEST, lambda: self.smoke.run(descriptor, keg))
        except _StageFailed:
            report.outcome = Outcome.INSTALLED_VERIFICATION_FAILED
        else:
            report.outcome = Outcome.INSTALLED
        return self._finish(report)

    def _finish(self, report: InstallReport) -> InstallReport:
        failed = report.failed_stage
        logger.info(
            "安装管线结束: %s@%s -> %s%s",
            report.name, report.version, report.outcome.value,
            f" (失败阶段: {failed.value})" if failed else "",
            extra=log_context(report),
        )
        self._notify("on_report", report)
        return report
