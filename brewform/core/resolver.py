"""来源变体解析

按声明顺序选出第一个平台谓词匹配的变体（先匹配者胜），纯函数无副作用。
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Sequence

from brewform.core.exceptions import NoMatchingVariantError
from brewform.core.models import HostPlatform, SourceVariant

logger = logging.getLogger(__name__)


def detect_host() -> HostPlatform:
    """读取当前解释器所在机器的平台"""
    return HostPlatform.normalize(platform.system(), platform.machine())


def host_from_args(os_name: str | None = None, arch: str | None = None) -> HostPlatform:
    """命令行覆盖平台；未指定的部分取自当前机器"""
    detected = detect_host()
    if not os_name and not arch:
        return detected
    return HostPlatform.normalize(os_name or detected.os, arch or detected.arch)


def resolve_variant(
    sources: Sequence[SourceVariant], host: HostPlatform,
) -> SourceVariant:
    """选出匹配 host 的第一个来源变体

    Raises:
        NoMatchingVariantError: 没有任何变体匹配
    """
    for variant in sources:
        if variant.platform.matches(host):
            logger.info("平台 %s 选中变体: %s (%s)", host, variant.platform.value, variant.url)
            return variant
    declared = [v.platform.value for v in sources]
    raise NoMatchingVariantError(
        f"没有匹配平台 {host} 的来源变体，已声明: {declared}"
    )
