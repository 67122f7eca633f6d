"""formula 静态检查

只给出警告，不阻止加载；哈希是否真的匹配要到下载校验阶段才能确认。
"""

from __future__ import annotations

from brewform.core.models import PackageDescriptor, Platform
from brewform.utils.hashing import is_sha256_hex


def lint(descriptor: PackageDescriptor) -> list[str]:
    """返回 formula 的全部警告信息"""
    warnings: list[str] = []
    seen: set[Platform] = set()
    generic_at: int | None = None

    for i, v in enumerate(descriptor.sources):
        where = f"sources[{i}] ({v.platform.value})"
        if not is_sha256_hex(v.sha256):
            warnings.append(f"{where}: sha256 不是 64 位十六进制摘要: {v.sha256}")
        if v.platform in seen:
            warnings.append(f"{where}: 平台重复声明，只有第一个会被选中")
        elif generic_at is not None:
            warnings.append(
                f"{where}: 被 sources[{generic_at}] (generic-source) 遮蔽，永远不会被选中"
            )
        seen.add(v.platform)
        if v.platform is Platform.GENERIC_SOURCE:
            if generic_at is None:
                generic_at = i
            if v.build_dependency is None:
                warnings.append(f"{where}: 源码构建变体未声明 build_dep")
        elif v.build_dependency is not None:
            warnings.append(f"{where}: 预编译变体声明了 build_dep '{v.build_dependency}'")

    if not descriptor.install_steps:
        warnings.append("install: 未定义安装步骤")
    if not descriptor.test_steps:
        warnings.append("test: 未定义冒烟测试步骤")
    if not descriptor.license:
        warnings.append("license: 未声明许可证")
    return warnings
