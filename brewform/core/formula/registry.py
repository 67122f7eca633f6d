"""formula 仓库与发布台账

职责:
- 从 formula 目录加载全部描述文件（每个包一个 <name>.yml）
- 发布台账记录每个已发布版本的来源摘要，保证版本不可变
- 新版本通过 supersede 生成新描述并覆盖写入，旧版本只保留在台账里

台账格式 (published.yml):
    brewup:
      0.1.0:
        fingerprint: <sources sha256>
        published_at: 2026-01-01T00:00:00+00:00
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml

from brewform.core.exceptions import (
    ConfigError,
    DescriptorError,
    FormulaNotFoundError,
    VersionImmutableError,
)
from brewform.core.formula.loader import SEMVER_RE, load_descriptor
from brewform.core.models import PackageDescriptor, Platform, SourceVariant
from brewform.utils.hashing import is_sha256_hex
from brewform.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

PLACEHOLDER_SHA256 = "REPLACE_WITH_ACTUAL_SHA256"


def _check_hashes(name: str, hashes: dict[Platform, str]) -> None:
    bad = [p.value for p, h in hashes.items() if not is_sha256_hex(h)]
    if bad:
        raise DescriptorError(
            f"{name} 的哈希不是 64 位十六进制: {sorted(bad)}",
            details=[f"{p}: {hashes[Platform(p)]!r}" for p in sorted(bad)],
        )


class FormulaRegistry:
    """formula 仓库 - 从目录加载描述并维护发布台账"""

    def __init__(self, formula_dir: str = "", ledger_file: str = "") -> None:
        if not formula_dir or not ledger_file:
            from brewform.core.config import get_config
            cfg = get_config()
            formula_dir = formula_dir or cfg.formula_dir
            ledger_file = ledger_file or cfg.ledger_file
        self.formula_dir = Path(formula_dir)
        self.ledger_file = Path(ledger_file)
        self._formulas: dict[str, PackageDescriptor] | None = None
        self._paths: dict[str, Path] = {}

    # ------------------------------------------------------------------
    # 加载
    # ------------------------------------------------------------------

    def formula_files(self) -> list[Path]:
        """formula 目录下全部描述文件（跳过隐藏文件和台账本身）"""
        if not self.formula_dir.is_dir():
            logger.warning("formula 目录不存在: %s", self.formula_dir)
            return []
        ledger = self.ledger_file.resolve()
        files = [
            p for p in sorted(self.formula_dir.iterdir())
            if p.suffix in (".yml", ".yaml")
            and not p.name.startswith(".")
            and p.resolve() != ledger
        ]
        return files

    def load(self) -> dict[str, PackageDescriptor]:
        """加载全部 formula，名称重复或任一文件无效均报错"""
        formulas: dict[str, PackageDescriptor] = {}
        paths: dict[str, Path] = {}
        for path in self.formula_files():
            descriptor = load_descriptor(path)
            if descriptor.name in formulas:
                raise DescriptorError(
                    f"formula 名称重复: '{descriptor.name}' "
                    f"({paths[descriptor.name]} 与 {path})"
                )
            formulas[descriptor.name] = descriptor
            paths[descriptor.name] = path
        self._formulas = formulas
        self._paths = paths
        logger.info("已加载 %d 个 formula", len(formulas))
        return formulas

    @property
    def formulas(self) -> dict[str, PackageDescriptor]:
        if self._formulas is None:
            self.load()
        assert self._formulas is not None
        return self._formulas

    def get(self, name: str) -> PackageDescriptor:
        """按名称获取 formula，并校验与已发布记录一致"""
        descriptor = self.formulas.get(name)
        if descriptor is None:
            raise FormulaNotFoundError(
                f"formula '{name}' 不存在。可用: {sorted(self.formulas)}"
            )
        self.ensure_consistent(descriptor)
        return descriptor

    def path_of(self, name: str) -> Path:
        self.get(name)
        return self._paths[name]

    def list_formulas(self) -> list[dict[str, str]]:
        """格式化 formula 列表用于展示"""
        ledger = self._load_ledger()
        results = []
        for d in self.formulas.values():
            results.append({
                "name": d.name,
                "version": d.version,
                "platforms": ",".join(d.platforms),
                "published": "yes" if d.version in ledger.get(d.name, {}) else "no",
                "description": d.description,
            })
        return results

    # ------------------------------------------------------------------
    # 发布台账
    # ------------------------------------------------------------------

    def _load_ledger(self) -> dict[str, dict[str, dict]]:
        try:
            data = load_yaml(self.ledger_file)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"发布台账无法解析: {self.ledger_file} - {e}") from e
        ledger: dict[str, dict[str, dict]] = {}
        for name, versions in data.items():
            versions = versions or {}
            if not isinstance(versions, dict) or not all(
                isinstance(rec, dict) for rec in versions.values()
            ):
                raise ConfigError(
                    f"发布台账格式错误: {self.ledger_file} 中 '{name}' "
                    "必须是 版本 -> 记录 的映射"
                )
            ledger[str(name)] = {str(v): rec for v, rec in versions.items()}
        return ledger

    def published_record(self, name: str, version: str) -> dict | None:
        return self._load_ledger().get(name, {}).get(version)

    def published_versions(self, name: str) -> list[str]:
        return list(self._load_ledger().get(name, {}))

    def ensure_consistent(self, descriptor: PackageDescriptor) -> None:
        """已发布版本的来源不得改动"""
        record = self.published_record(descriptor.name, descriptor.version)
        if record is None:
            return
        if record.get("fingerprint") != descriptor.sources_fingerprint():
            raise VersionImmutableError(
                f"{descriptor.name}@{descriptor.version} 已于 "
                f"{record.get('published_at', '?')} 发布，来源不可修改；"
                "请发布新版本"
            )

    def publish(self, descriptor: PackageDescriptor) -> dict:
        """记录一次发布；同版本同来源重复发布是幂等的"""
        self.ensure_consistent(descriptor)
        ledger = self._load_ledger()
        versions = ledger.setdefault(descriptor.name, {})
        existing = versions.get(descriptor.version)
        if existing is not None:
            logger.info("版本已发布，无需重复记录: %s@%s", descriptor.name, descriptor.version)
            return existing

        record = {
            "fingerprint": descriptor.sources_fingerprint(),
            "published_at": datetime.now(tz=timezone.utc).isoformat(),
        }
        versions[descriptor.version] = record
        save_yaml(self.ledger_file, ledger)
        logger.info("已发布: %s@%s", descriptor.name, descriptor.version)
        return record

    # ------------------------------------------------------------------
    # 版本演进
    # ------------------------------------------------------------------

    def _write(self, descriptor: PackageDescriptor) -> Path:
        path = self._paths.get(descriptor.name) or (
            self.formula_dir / f"{descriptor.name}.yml"
        )
        save_yaml(path, descriptor.to_dict())
        if self._formulas is not None:
            self._formulas[descriptor.name] = descriptor
            self._paths[descriptor.name] = path
        return path

    def supersede(
        self,
        name: str,
        new_version: str,
        hashes: dict[Platform, str] | None = None,
    ) -> PackageDescriptor:
        """生成新版本描述并写回 formula 文件

        URL 中的旧版本号替换为新版本号；未提供哈希的变体写入占位符，
        发布前需用 update_hashes 补齐。
        """
        current = self.get(name)
        if not SEMVER_RE.match(new_version):
            raise DescriptorError(f"'{new_version}' 不是语义化版本号")
        if new_version == current.version or self.published_record(name, new_version):
            raise VersionImmutableError(
                f"{name}@{new_version} 已存在，不能复用版本号"
            )
        hashes = hashes or {}
        _check_hashes(name, hashes)
        sources = tuple(
            SourceVariant(
                platform=v.platform,
                url=v.url.replace(current.version, new_version),
                sha256=hashes.get(v.platform, PLACEHOLDER_SHA256),
                build_dependency=v.build_dependency,
            )
            for v in current.sources
        )
        new = current.supersede(new_version, sources)
        path = self._write(new)
        logger.info("%s: %s -> %s (%s)", name, current.version, new_version, path)
        return new

    def update_hashes(
        self, name: str, hashes: dict[Platform, str],
    ) -> PackageDescriptor:
        """回填未发布版本的变体哈希"""
        current = self.get(name)
        if self.published_record(name, current.version):
            raise VersionImmutableError(
                f"{name}@{current.version} 已发布，不能修改哈希"
            )
        unknown = set(hashes) - {v.platform for v in current.sources}
        if unknown:
            raise DescriptorError(
                f"{name} 没有这些平台的来源: {sorted(p.value for p in unknown)}"
            )
        _check_hashes(name, hashes)
        sources = tuple(
            SourceVariant(
                platform=v.platform, url=v.url,
                sha256=hashes.get(v.platform, v.sha256),
                build_dependency=v.build_dependency,
            )
            for v in current.sources
        )
        updated = current.supersede(current.version, sources)
        self._write(updated)
        logger.info("已更新 %s@%s 的哈希: %s", name, current.version,
                    ", ".join(p.value for p in hashes))
        return updated
