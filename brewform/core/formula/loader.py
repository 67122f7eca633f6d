"""formula 描述加载与校验

职责:
- 把 YAML 字典转换为不可变的 PackageDescriptor
- 一次性收集全部字段错误，统一以 DescriptorError(details) 抛出
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from brewform.core.exceptions import DescriptorError, ValidationError
from brewform.core.models import PackageDescriptor, Platform, SourceVariant
from brewform.utils.net import validate_url_scheme
from brewform.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._+-]*$")
SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)

_PLATFORM_VALUES = [p.value for p in Platform]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_steps(value: Any, key: str, errors: list[str]) -> tuple[str, ...]:
    """install / test 字段: 接受单个字符串或字符串列表"""
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        errors.append(f"{key}: 必须是命令字符串列表")
        return ()
    steps = []
    for i, step in enumerate(value):
        if not isinstance(step, str) or not step.strip():
            errors.append(f"{key}[{i}]: 必须是非空命令字符串")
            continue
        steps.append(step.strip())
    return tuple(steps)


def _parse_variant(
    index: int, info: Any, errors: list[str],
) -> SourceVariant | None:
    where = f"sources[{index}]"
    if not isinstance(info, dict):
        errors.append(f"{where}: 必须是映射")
        return None

    platform_raw = _as_text(info.get("platform"))
    try:
        platform = Platform(platform_raw)
    except ValueError:
        errors.append(
            f"{where}.platform: 不支持的平台 '{platform_raw}'，可选: {_PLATFORM_VALUES}"
        )
        platform = None

    url = _as_text(info.get("url"))
    if not url:
        errors.append(f"{where}.url: 不能为空")
    else:
        try:
            validate_url_scheme(url, context=where)
        except ValidationError as e:
            errors.append(f"{where}.url: {e}")

    sha256 = _as_text(info.get("sha256"))
    if not sha256:
        errors.append(f"{where}.sha256: 不能为空")

    build_dep = info.get("build_dep", info.get("build_dependency"))
    if build_dep is not None and (not isinstance(build_dep, str) or not build_dep.strip()):
        errors.append(f"{where}.build_dep: 必须是非空字符串")
        build_dep = None

    if platform is None or not url or not sha256:
        return None
    return SourceVariant(
        platform=platform,
        url=url,
        sha256=sha256,
        build_dependency=build_dep.strip() if build_dep else None,
    )


def parse_descriptor(data: dict[str, Any], *, origin: str = "<memory>") -> PackageDescriptor:
    """校验并构建 PackageDescriptor

    Raises:
        DescriptorError: 任一字段非法，details 中列出全部问题
    """
    errors: list[str] = []

    name = _as_text(data.get("name"))
    if not name:
        errors.append("name: 不能为空")
    elif not NAME_RE.match(name):
        errors.append(f"name: 非法名称 '{name}'（仅允许小写字母、数字和 ._+-）")

    version = _as_text(data.get("version"))
    if not version:
        errors.append("version: 不能为空")
    elif not SEMVER_RE.match(version):
        errors.append(f"version: '{version}' 不是语义化版本号 (MAJOR.MINOR.PATCH)")

    homepage = _as_text(data.get("homepage"))
    if homepage:
        try:
            validate_url_scheme(homepage, context="homepage")
        except ValidationError as e:
            errors.append(f"homepage: {e}")

    raw_sources = data.get("sources")
    variants: list[SourceVariant] = []
    if not isinstance(raw_sources, list) or not raw_sources:
        errors.append("sources: 至少需要一个来源变体")
    else:
        for i, info in enumerate(raw_sources):
            variant = _parse_variant(i, info, errors)
            if variant is not None:
                variants.append(variant)

    install_steps = _as_steps(data.get("install"), "install", errors)
    test_steps = _as_steps(data.get("test"), "test", errors)

    if errors:
        raise DescriptorError(
            f"formula 描述无效: {origin} ({len(errors)} 处错误)", details=errors,
        )

    return PackageDescriptor(
        name=name,
        description=_as_text(data.get("description")),
        homepage=homepage,
        license=_as_text(data.get("license")),
        version=version,
        sources=tuple(variants),
        install_steps=install_steps,
        test_steps=test_steps,
    )


def load_descriptor(path: str | Path) -> PackageDescriptor:
    """从 YAML 文件加载 formula 描述"""
    p = Path(path)
    if not p.exists():
        raise DescriptorError(f"formula 文件不存在: {p}")
    try:
        data = load_yaml(p)
    except (yaml.YAMLError, ValueError) as e:
        raise DescriptorError(f"formula 文件无法解析: {p}", details=[str(e)]) from e
    if not data:
        raise DescriptorError(f"formula 文件为空或不是映射: {p}")
    descriptor = parse_descriptor(data, origin=str(p))
    logger.debug("已加载 formula: %s@%s <- %s", descriptor.name, descriptor.version, p)
    return descriptor
