"""安装执行器

职责:
- 检查源码变体声明的构建依赖（必须在任何安装步骤之前就位）
- 解包已校验的制品到临时构建目录
- 在暂存 keg (<cellar>/<name>/.<version>.partial) 中执行安装步骤
- 全部步骤成功后原子地改名为 <cellar>/<name>/<version>；失败则清理暂存目录
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

from brewform.core.exceptions import InstallStepError
from brewform.core.models import PackageDescriptor, SourceVariant
from brewform.core.steps import StepContext, run_steps
from brewform.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

_TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tbz", ".tar.xz", ".txz", ".tar")

# 构建依赖按 Homebrew formula 名声明，检查时对应到实际可执行文件
BUILD_TOOL_EXECUTABLES = {
    "rust": "cargo",
    "python": "python3",
    "openjdk": "java",
    "pkgconf": "pkg-config",
}


def build_tool_executable(dep: str) -> str:
    """构建依赖名对应的可执行文件名；未登记的依赖同名"""
    return BUILD_TOOL_EXECUTABLES.get(dep, dep)


def unpack(artifact: Path, dest: Path) -> Path:
    """解包制品，返回构建工作目录

    压缩包只有一个顶层目录时进入该目录（GitHub 源码包即是如此）；
    非压缩包的普通文件原样复制。
    """
    name = artifact.name.lower()
    if name.endswith(_TAR_SUFFIXES):
        with tarfile.open(artifact) as tar:
            tar.extractall(dest, filter="data")
    elif name.endswith(".zip"):
        with zipfile.ZipFile(artifact) as zf:
            zf.extractall(dest)
    else:
        shutil.copy2(artifact, dest / artifact.name)
        return dest

    entries = [p for p in dest.iterdir() if not p.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return dest


class InstallExecutor:
    """安装执行器"""

    def __init__(
        self,
        cellar: str = "",
        executor: CommandExecutor | None = None,
        step_timeout: int | None = None,
    ) -> None:
        if not cellar or step_timeout is None:
            from brewform.core.config import get_config
            cfg = get_config()
            cellar = cellar or cfg.cellar
            step_timeout = cfg.step_timeout if step_timeout is None else step_timeout
        self.cellar = Path(cellar)
        self.executor = executor or get_executor()
        self.step_timeout = step_timeout

    def keg_path(self, descriptor: PackageDescriptor) -> Path:
        return self.cellar / descriptor.name / descriptor.version

    def check_build_dependency(self, variant: SourceVariant) -> None:
        dep = variant.build_dependency
        if dep is None:
            return
        exe = build_tool_executable(dep)
        if shutil.which(exe) is None:
            raise InstallStepError(
                f"depends_on {dep} => :build", 127,
                f"构建依赖 '{dep}' 未安装或 '{exe}' 不在 PATH 中",
            )
        logger.info("构建依赖就绪: %s (%s)", dep, exe)

    def install(
        self,
        descriptor: PackageDescriptor,
        variant: SourceVariant,
        artifact: Path,
    ) -> Path:
        """执行安装，返回最终 keg 路径

        Raises:
            InstallStepError: 构建依赖缺失或任一步骤非零退出
        """
        self.check_build_dependency(variant)

        keg = self.keg_path(descriptor)
        staging = keg.with_name(f".{descriptor.version}.partial")
        if staging.exists():
            shutil.rmtree(staging)
        (staging / "bin").mkdir(parents=True)

        logger.info("安装 %s@%s -> %s", descriptor.name, descriptor.version, keg)
        try:
            with tempfile.TemporaryDirectory(prefix=f"{descriptor.name}-build-") as tmp:
                try:
                    buildpath = unpack(artifact, Path(tmp))
                except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
                    raise InstallStepError(f"unpack {artifact.name}", 1, str(e)) from e
                ctx = StepContext(
                    name=descriptor.name, version=descriptor.version,
                    prefix=staging, buildpath=buildpath,
                )
                run_steps(
                    descriptor.install_steps, ctx, self.executor,
                    error_cls=InstallStepError, timeout=self.step_timeout,
                    label="install",
                )
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        try:
            self._promote(staging, keg)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise InstallStepError(f"promote {staging.name} -> {keg.name}", 1, str(e)) from e
        logger.info("安装完成: %s", keg)
        return keg

    @staticmethod
    def _promote(staging: Path, keg: Path) -> None:
        """暂存目录替换为正式 keg；旧 keg 在新 keg 就位后才删除"""
        old = keg.with_name(f".{keg.name}.old")
        if old.exists():
            shutil.rmtree(old)
        if keg.exists():
            keg.rename(old)
        try:
            staging.rename(keg)
        except OSError:
            if old.exists() and not keg.exists():
                old.rename(keg)
                logger.warning("新 keg 就位失败，已恢复旧 keg: %s", keg)
            raise
        if old.exists():
            shutil.rmtree(old)

    def uninstall(self, descriptor: PackageDescriptor) -> bool:
        keg = self.keg_path(descriptor)
        if not keg.exists():
            return False
        shutil.rmtree(keg)
        logger.info("已卸载: %s", keg)
        return True
