"""CLI — formula 查询与约束检查命令"""

from __future__ import annotations

import click

from formulakit.cli import _svc, handle_errors


def register(group: click.Group) -> None:
    group.add_command(list_formulas)
    group.add_command(info)
    group.add_command(check)


@click.command(name="list")
@handle_errors
def list_formulas() -> None:
    """列出所有已知 formula"""
    formulas = _svc().list_formulas()
    if not formulas:
        click.echo("没有可用的 formula。")
        return
    for f in formulas:
        click.echo(
            f"  {f['name']:20s} {f['version']:10s} "
            f"[{', '.join(f['versions'])}]  {f['description']}"
        )


@click.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="指定版本（默认最新）")
@handle_errors
def info(name: str, version: str | None) -> None:
    """显示 formula 详情"""
    data = _svc().info(name, version)
    for key in ("name", "version", "description", "homepage", "license", "url", "sha256"):
        click.echo(f"{key:12s} {data[key]}")
    click.echo(f"{'versions':12s} {', '.join(data['versions'])}")
    for title in ("depends_on", "build", "install"):
        click.echo(f"{title}:")
        for line in data[title]:
            click.echo(f"  - {line}")
    click.echo(f"{'test':12s} {data['test']}")


@click.command()
@click.argument("name")
@click.option("--version", "version", default=None, help="指定版本（默认最新）")
@handle_errors
def check(name: str, version: str | None) -> None:
    """检查当前主机是否满足 formula 的依赖约束"""
    report = _svc().check(name, version)
    if not report.results:
        click.echo(f"{name}: 无依赖约束")
        return
    for r in report.results:
        if r.satisfied:
            mark = "OK"
        elif r.fatal:
            mark = "FAIL"
        else:
            mark = "WARN"
        click.echo(f"  [{mark:4s}] {r.dependency}  found={r.found_version or '-'}")
    if not report.ok:
        raise SystemExit(1)
