"""CLI — 安装流水线命令"""

from __future__ import annotations

import click

from formulakit.cli import _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(fetch)
    group.add_command(test)


@click.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="指定版本（默认最新）")
@click.option("--keep-scratch", is_flag=True, default=False, help="保留临时构建目录")
@handle_errors
def install(name: str, version: str | None, keep_scratch: bool) -> None:
    """下载、构建、安装并自检 formula"""
    # 未指定时沿用配置文件中的 keep_scratch
    report = _svc().install(name, version, keep_scratch=keep_scratch or None)
    if report.constraints is not None:
        for r in report.constraints.advisory:
            click.echo(f"警告: 运行依赖未满足 {r.dependency}")
    for path in report.installed:
        click.echo(f"  已安装: {path}")
    if report.scratch_dir and keep_scratch:
        click.echo(f"  临时目录: {report.scratch_dir}")
    click.echo(f"{report.descriptor.ident}: {report.status.value}")


@click.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="指定版本（默认最新）")
@handle_errors
def fetch(name: str, version: str | None) -> None:
    """只下载并校验源码包"""
    path = _svc().fetch(name, version)
    click.echo(f"就绪: {name} -> {path}")


@click.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="指定版本（默认最新）")
@handle_errors
def test(name: str, version: str | None) -> None:
    """对已安装的 formula 重新执行自检"""
    result = _svc().test(name, version)
    if result is None:
        click.echo(f"{name}: 未定义 test")
        return
    click.echo(result.output.strip())
    click.echo(f"{name}: 自检通过")
