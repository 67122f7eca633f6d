"""集中配置管理

提供统一的配置入口，支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from brewform.core.exceptions import ConfigError
from brewform.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/default.yml"


@dataclass
class Config:
    """全局配置"""

    # 目录
    formula_dir: str = "Formula"
    cache_dir: str = "var/cache"
    cellar: str = "var/Cellar"
    ledger_file: str = "Formula/published.yml"

    # 下载
    download_timeout: int = 60
    download_retries: int = 2

    # 执行
    step_timeout: int = 1800

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(str(e)) from e
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        for key in ("download_timeout", "download_retries", "step_timeout"):
            if key in matched and (
                not isinstance(matched[key], int) or matched[key] < 0
            ):
                raise ConfigError(f"配置项 {key} 必须是非负整数: {matched[key]!r}")
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def keg_root(self, name: str) -> Path:
        return Path(self.cellar) / name

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current


def reset_config() -> None:
    """清除全局配置（测试用）"""
    global _current  # noqa: PLW0603
    _current = None
