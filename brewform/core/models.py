"""核心数据模型

formula 描述（PackageDescriptor / SourceVariant）、宿主平台以及安装管线
的结果记录集中定义于此。描述类均为不可变 dataclass：一个版本发布后只会被
新版本的描述取代，不会被原地修改。
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field, replace
from enum import Enum

# =========================================================================
# 平台
# =========================================================================


class Platform(str, Enum):
    """来源变体的平台谓词"""

    INTEL_MAC = "intel-mac"
    ARM_MAC = "arm-mac"
    GENERIC_SOURCE = "generic-source"

    def matches(self, host: HostPlatform) -> bool:
        if self is Platform.GENERIC_SOURCE:
            return True
        if host.os != "macos":
            return False
        if self is Platform.INTEL_MAC:
            return host.arch == "x86_64"
        return host.arch == "arm64"


_OS_ALIASES = {
    "darwin": "macos",
    "macos": "macos",
    "mac": "macos",
    "osx": "macos",
    "linux": "linux",
    "windows": "windows",
    "win32": "windows",
}

_ARCH_ALIASES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "intel": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "arm": "arm64",
}


@dataclass(frozen=True)
class HostPlatform:
    """执行环境的操作系统和 CPU 架构（已归一化）"""

    os: str
    arch: str

    @classmethod
    def normalize(cls, os_name: str, arch: str) -> HostPlatform:
        """归一化 platform.system() / platform.machine() 的原始取值

        Darwin -> macos，aarch64 -> arm64，AMD64 -> x86_64；未知取值保持小写原样。
        """
        os_key = os_name.strip().lower()
        arch_key = arch.strip().lower()
        return cls(
            os=_OS_ALIASES.get(os_key, os_key),
            arch=_ARCH_ALIASES.get(arch_key, arch_key),
        )

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


# =========================================================================
# formula 描述
# =========================================================================


@dataclass(frozen=True)
class SourceVariant:
    """一个平台相关的来源：制品地址 + 完整性哈希"""

    platform: Platform
    url: str
    sha256: str
    build_dependency: str | None = None

    @property
    def is_prebuilt(self) -> bool:
        return self.build_dependency is None

    def to_dict(self) -> dict[str, str]:
        data = {
            "platform": self.platform.value,
            "url": self.url,
            "sha256": self.sha256,
        }
        if self.build_dependency:
            data["build_dep"] = self.build_dependency
        return data


@dataclass(frozen=True)
class PackageDescriptor:
    """formula 描述：元信息 + 有序来源 + 安装步骤 + 冒烟测试步骤"""

    name: str
    description: str
    homepage: str
    license: str
    version: str
    sources: tuple[SourceVariant, ...]
    install_steps: tuple[str, ...] = ()
    test_steps: tuple[str, ...] = ()

    @property
    def platforms(self) -> list[str]:
        return [v.platform.value for v in self.sources]

    def sources_fingerprint(self) -> str:
        """来源列表的稳定摘要，用于判断同一版本是否被改动过"""
        payload = json.dumps(
            [v.to_dict() for v in self.sources], sort_keys=True,
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def supersede(
        self, version: str, sources: tuple[SourceVariant, ...] | None = None,
    ) -> PackageDescriptor:
        """生成新版本的描述，原描述保持不变"""
        return replace(
            self, version=version,
            sources=self.sources if sources is None else tuple(sources),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "homepage": self.homepage,
            "license": self.license,
            "version": self.version,
            "sources": [v.to_dict() for v in self.sources],
            "install": list(self.install_steps),
            "test": list(self.test_steps),
        }


# =========================================================================
# 管线结果
# =========================================================================


class Stage(str, Enum):
    RESOLVE = "resolve"
    FETCH = "fetch"
    VERIFY = "verify"
    INSTALL = "install"
    TEST = "test"


class Outcome(str, Enum):
    """一次安装的最终结论"""

    INSTALLED = "installed"
    INSTALLED_VERIFICATION_FAILED = "installed_verification_failed"
    FAILED = "failed"
    PLANNED = "planned"


@dataclass
class StageResult:
    """单个阶段的执行结果"""

    stage: Stage
    ok: bool
    message: str = ""
    duration: float = 0.0  # 秒
    error_code: str = ""


@dataclass
class InstallReport:
    """一次安装管线的汇总报告"""

    name: str
    version: str
    outcome: Outcome = Outcome.FAILED
    variant: SourceVariant | None = None
    artifact: str = ""
    prefix: str = ""
    stages: list[StageResult] = field(default_factory=list)
    planned_steps: list[str] = field(default_factory=list)

    @property
    def failed_stage(self) -> Stage | None:
        for s in self.stages:
            if not s.ok:
                return s.stage
        return None

    @property
    def installed(self) -> bool:
        return self.outcome in (
            Outcome.INSTALLED, Outcome.INSTALLED_VERIFICATION_FAILED,
        )

    @property
    def success(self) -> bool:
        return self.outcome in (Outcome.INSTALLED, Outcome.PLANNED)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "outcome": self.outcome.value,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "platform": self.variant.platform.value if self.variant else None,
            "url": self.variant.url if self.variant else None,
            "artifact": self.artifact,
            "prefix": self.prefix,
            "stages": [
                {
                    "stage": s.stage.value, "ok": s.ok,
                    "message": s.message, "duration": round(s.duration, 3),
                    "error_code": s.error_code,
                }
                for s in self.stages
            ],
        }
