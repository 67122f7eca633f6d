"""brewform 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
业务异常统一在 group 层转为错误提示和非零退出码。
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from brewform import __version__
from brewform.core.exceptions import BrewformError, ValidationError
from brewform.core.models import Platform
from brewform.utils.hashing import is_sha256_hex
from brewform.utils.logger import setup_logging

EXIT_FAILED = 1
EXIT_VERIFICATION_FAILED = 3


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 key=value 参数对"""
    result: dict[str, str] = {}
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            result[k.strip()] = v.strip()
    return result


def _parse_hashes(pairs: tuple[str, ...]) -> dict[Platform, str]:
    """解析 --sha256 platform=hex"""
    hashes: dict[Platform, str] = {}
    for key, value in _parse_kv_pairs(pairs).items():
        try:
            platform = Platform(key)
        except ValueError as e:
            raise click.BadParameter(
                f"未知平台 '{key}'，可选: {[p.value for p in Platform]}",
                param_hint="--sha256",
            ) from e
        if not is_sha256_hex(value):
            raise click.BadParameter(
                f"'{key}' 的哈希不是 64 位十六进制: '{value}'",
                param_hint="--sha256",
            )
        hashes[platform] = value.lower()
    return hashes


def echo_error(err: BrewformError) -> None:
    stage = f" ({err.stage})" if err.stage else ""
    click.secho(f"错误 [{err.code}]{stage}: {err}", fg="red", err=True)
    if isinstance(err, ValidationError):
        for detail in err.details:
            click.echo(f"  - {detail}", err=True)


class BrewformGroup(click.Group):
    """捕获 BrewformError，输出错误码与阶段后以 1 退出"""

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except BrewformError as e:
            echo_error(e)
            ctx.exit(EXIT_FAILED)


@click.group(cls=BrewformGroup)
@click.version_option(version=__version__)
@click.option("--config", "config_path", default="configs/default.yml",
              help="配置文件路径（不存在则使用默认配置）")
@click.option("--formula-dir", default=None, help="覆盖 formula 目录")
@click.option("--cache-dir", default=None, help="覆盖下载缓存目录")
@click.option("--cellar", default=None, help="覆盖安装根目录")
def main(
    config_path: str, formula_dir: str | None,
    cache_dir: str | None, cellar: str | None,
) -> None:
    """brewform - formula 描述管理与安装管线"""
    from brewform.core.config import get_config, init_config, reset_config

    setup_logging(
        level=os.getenv("BREWFORM_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("BREWFORM_LOG_JSON", "") == "1",
    )
    reset_config()
    cfg = init_config(config_path) if Path(config_path).is_file() else get_config()
    if formula_dir:
        cfg.formula_dir = formula_dir
        cfg.ledger_file = str(Path(formula_dir) / "published.yml")
    if cache_dir:
        cfg.cache_dir = cache_dir
    if cellar:
        cfg.cellar = cellar


# 注册各领域子命令
from brewform.cli.cmd_formula import register as _reg_formula  # noqa: E402
from brewform.cli.cmd_install import register as _reg_install  # noqa: E402

_reg_formula(main)
_reg_install(main)
