"""CLI — formula 管理命令（查看、检查、渲染、发布、版本演进）"""

from __future__ import annotations

import tempfile
from pathlib import Path

import click

from brewform.cli import EXIT_FAILED, _parse_hashes
from brewform.core.exceptions import (
    BrewformError,
    DescriptorError,
    FormulaNotFoundError,
)
from brewform.utils.hashing import is_sha256_hex, sha256_file


def register(group: click.Group) -> None:
    group.add_command(list_formulas)
    group.add_command(show)
    group.add_command(check)
    group.add_command(render)
    group.add_command(publish)
    group.add_command(bump)
    group.add_command(update_hashes)
    group.add_command(checksum)


def _registry():
    from brewform.core.formula import FormulaRegistry
    return FormulaRegistry()


@click.command(name="list")
def list_formulas() -> None:
    """列出所有 formula"""
    formulas = _registry().list_formulas()
    if not formulas:
        click.echo("没有 formula。")
        return
    for f in formulas:
        click.echo(
            f"  {f['name']:20s} {f['version']:10s} "
            f"[{f['platforms']}] published={f['published']}  {f['description']}"
        )


@click.command()
@click.argument("name")
def show(name: str) -> None:
    """显示 formula 描述"""
    from brewform.utils.yaml_io import dump_yaml
    reg = _registry()
    descriptor = reg.get(name)
    click.echo(dump_yaml(descriptor.to_dict()), nl=False)
    versions = reg.published_versions(name)
    click.echo(f"# 已发布版本: {', '.join(versions) if versions else '(无)'}")


@click.command()
@click.argument("name", required=False)
@click.option("--strict", is_flag=True, help="有警告也以非零状态退出")
def check(name: str | None, strict: bool) -> None:
    """校验 formula（加载错误、占位哈希、被遮蔽的变体等）"""
    from brewform.core.formula import lint, load_descriptor
    reg = _registry()
    errors = 0
    warnings = 0
    matched = False
    for path in reg.formula_files():
        try:
            descriptor = load_descriptor(path)
        except DescriptorError as e:
            errors += 1
            click.secho(f"✗ {path}: {e}", fg="red")
            for detail in e.details:
                click.echo(f"    - {detail}")
            continue
        if name and descriptor.name != name:
            continue
        matched = True
        problems = lint(descriptor)
        try:
            reg.ensure_consistent(descriptor)
        except BrewformError as e:
            errors += 1
            click.secho(f"✗ {descriptor.name}: {e}", fg="red")
            continue
        if problems:
            warnings += len(problems)
            click.secho(f"! {descriptor.name}@{descriptor.version}", fg="yellow")
            for p in problems:
                click.echo(f"    - {p}")
        else:
            click.secho(f"✓ {descriptor.name}@{descriptor.version}", fg="green")

    if name and not matched:
        raise FormulaNotFoundError(f"formula '{name}' 不存在")
    click.echo(f"错误 {errors}，警告 {warnings}")
    if errors or (strict and warnings):
        click.get_current_context().exit(EXIT_FAILED)


@click.command()
@click.argument("name")
@click.option("--out", default=None, help="输出 .rb 文件路径（默认输出到终端）")
def render(name: str, out: str | None) -> None:
    """渲染为 Homebrew Ruby formula"""
    from brewform.core.formula import render_formula
    from brewform.utils.yaml_io import atomic_write
    text = render_formula(_registry().get(name))
    if out:
        atomic_write(Path(out), text)
        click.echo(f"已写入: {out}")
    else:
        click.echo(text, nl=False)


@click.command()
@click.argument("name")
def publish(name: str) -> None:
    """发布当前版本（写入发布台账，此后来源不可修改）"""
    reg = _registry()
    descriptor = reg.get(name)
    bad = [v.platform.value for v in descriptor.sources if not is_sha256_hex(v.sha256)]
    if bad:
        raise DescriptorError(
            f"{name}@{descriptor.version} 存在无效 sha256，拒绝发布: {bad}",
        )
    record = reg.publish(descriptor)
    click.echo(f"已发布: {name}@{descriptor.version} ({record['published_at']})")


@click.command()
@click.argument("name")
@click.argument("version")
@click.option("--sha256", "hashes", multiple=True, help="平台哈希，格式: platform=hex（可多次指定）")
def bump(name: str, version: str, hashes: tuple[str, ...]) -> None:
    """生成新版本描述（旧版本保留在台账中）"""
    new = _registry().supersede(name, version, _parse_hashes(hashes))
    click.echo(f"{name} -> {new.version}")
    for v in new.sources:
        click.echo(f"  {v.platform.value:15s} {v.sha256}  {v.url}")


@click.command(name="update-hashes")
@click.argument("name")
@click.option("--sha256", "hashes", multiple=True, help="平台哈希，格式: platform=hex（可多次指定）")
@click.option("--fetch", "do_fetch", is_flag=True, help="下载各变体制品并计算哈希")
def update_hashes(name: str, hashes: tuple[str, ...], do_fetch: bool) -> None:
    """回填未发布版本的变体哈希"""
    reg = _registry()
    parsed = _parse_hashes(hashes)
    if do_fetch:
        descriptor = reg.get(name)
        for v in descriptor.sources:
            if v.platform not in parsed:
                parsed[v.platform] = _remote_sha256(v.url)
    if not parsed:
        click.echo("请指定 --sha256 或 --fetch")
        return
    updated = reg.update_hashes(name, parsed)
    for v in updated.sources:
        click.echo(f"  {v.platform.value:15s} {v.sha256}")


@click.command()
@click.argument("target")
def checksum(target: str) -> None:
    """计算本地文件或远程 URL 的 sha256"""
    if Path(target).is_file():
        click.echo(sha256_file(target))
    else:
        click.echo(_remote_sha256(target))


def _remote_sha256(url: str) -> str:
    """下载到临时目录计算哈希，网络错误转为 DownloadError"""
    import urllib.error

    from brewform.core.config import get_config
    from brewform.core.exceptions import DownloadError
    from brewform.core.fetcher import download_file
    from brewform.utils.net import validate_url_scheme

    validate_url_scheme(url, context="checksum")
    with tempfile.TemporaryDirectory() as tmp:
        dest = Path(tmp) / "artifact"
        try:
            download_file(url, dest, get_config().download_timeout)
        except (urllib.error.URLError, OSError) as e:
            raise DownloadError(f"下载失败: {url} - {e}") from e
        return sha256_file(dest)
