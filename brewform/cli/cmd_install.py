"""CLI — 安装管线命令（解析、拉取、安装、冒烟测试、卸载）"""

from __future__ import annotations

import json

import click

from brewform.cli import EXIT_FAILED, EXIT_VERIFICATION_FAILED
from brewform.core.models import InstallReport, Outcome


def register(group: click.Group) -> None:
    group.add_command(resolve)
    group.add_command(fetch)
    group.add_command(install)
    group.add_command(test)
    group.add_command(uninstall)


def _platform_options(fn):
    fn = click.option("--arch", default=None, help="覆盖 CPU 架构 (x86_64 / arm64)")(fn)
    fn = click.option("--os", "os_name", default=None, help="覆盖操作系统 (macos / linux)")(fn)
    return fn


def _descriptor(name: str):
    from brewform.core.formula import FormulaRegistry
    return FormulaRegistry().get(name)


@click.command()
@click.argument("name")
@_platform_options
def resolve(name: str, os_name: str | None, arch: str | None) -> None:
    """选出当前（或指定）平台对应的来源变体"""
    from brewform.core.resolver import host_from_args, resolve_variant
    host = host_from_args(os_name, arch)
    variant = resolve_variant(_descriptor(name).sources, host)
    click.echo(f"平台:   {host}")
    click.echo(f"变体:   {variant.platform.value}")
    click.echo(f"URL:    {variant.url}")
    click.echo(f"sha256: {variant.sha256}")
    if variant.build_dependency:
        click.echo(f"构建依赖: {variant.build_dependency}")


@click.command()
@click.argument("name")
@_platform_options
def fetch(name: str, os_name: str | None, arch: str | None) -> None:
    """下载并校验制品（不安装）"""
    from brewform.core.fetcher import ArtifactFetcher
    from brewform.core.resolver import host_from_args, resolve_variant
    descriptor = _descriptor(name)
    variant = resolve_variant(descriptor.sources, host_from_args(os_name, arch))
    path = ArtifactFetcher().fetch(descriptor, variant)
    click.echo(f"就绪: {name} -> {path}")


def _echo_report(report: InstallReport) -> None:
    for s in report.stages:
        mark = click.style("✓", fg="green") if s.ok else click.style("✗", fg="red")
        line = f"  {mark} {s.stage.value:8s} {s.duration:6.2f}s"
        if s.message:
            line += f"  {s.message}"
        click.echo(line)
    for step in report.planned_steps:
        click.echo(f"    Would run: {step}")

    if report.outcome is Outcome.INSTALLED:
        click.secho(f"已安装: {report.name}@{report.version} -> {report.prefix}", fg="green")
    elif report.outcome is Outcome.PLANNED:
        click.secho(f"预览完成（未做任何修改）: {report.name}@{report.version}", fg="yellow")
    elif report.outcome is Outcome.INSTALLED_VERIFICATION_FAILED:
        click.secho(
            f"已安装但验证失败: {report.name}@{report.version} -> {report.prefix}",
            fg="yellow",
        )
    else:
        stage = report.failed_stage.value if report.failed_stage else "?"
        click.secho(f"安装失败（阶段 {stage}）: {report.name}@{report.version}", fg="red")


@click.command()
@click.argument("name")
@_platform_options
@click.option("--dry-run", is_flag=True, help="只解析平台并列出将执行的操作")
@click.option("--skip-test", is_flag=True, help="跳过安装后冒烟测试")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出报告")
def install(
    name: str, os_name: str | None, arch: str | None,
    dry_run: bool, skip_test: bool, as_json: bool,
) -> None:
    """执行 Resolve -> Fetch -> Verify -> Install -> Test 安装管线

    退出码: 0 成功，1 安装失败，3 已安装但冒烟测试失败
    """
    from brewform.core.pipeline import InstallPipeline
    from brewform.core.resolver import host_from_args
    report = InstallPipeline().run(
        _descriptor(name), host_from_args(os_name, arch),
        dry_run=dry_run, skip_test=skip_test,
    )
    if as_json:
        click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        _echo_report(report)

    ctx = click.get_current_context()
    if report.outcome is Outcome.FAILED:
        ctx.exit(EXIT_FAILED)
    if report.outcome is Outcome.INSTALLED_VERIFICATION_FAILED:
        ctx.exit(EXIT_VERIFICATION_FAILED)


@click.command()
@click.argument("name")
def test(name: str) -> None:
    """对已安装的 keg 重新执行冒烟测试"""
    from brewform.core.exceptions import NotInstalledError
    from brewform.core.installer import InstallExecutor
    from brewform.core.smoke import SmokeTestRunner
    descriptor = _descriptor(name)
    keg = InstallExecutor().keg_path(descriptor)
    if not keg.exists():
        raise NotInstalledError(f"{name}@{descriptor.version} 尚未安装: {keg}")
    SmokeTestRunner().run(descriptor, keg)
    click.secho(f"冒烟测试通过: {name}@{descriptor.version}", fg="green")


@click.command()
@click.argument("name")
def uninstall(name: str) -> None:
    """删除当前版本的 keg"""
    from brewform.core.installer import InstallExecutor
    descriptor = _descriptor(name)
    if InstallExecutor().uninstall(descriptor):
        click.echo(f"已卸载: {name}@{descriptor.version}")
    else:
        click.echo(f"未安装: {name}@{descriptor.version}")
