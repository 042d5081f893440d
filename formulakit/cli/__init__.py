"""formulakit 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
import os
import sys
from collections.abc import Callable
from typing import Any

import click

from formulakit import __version__
from formulakit.core.config import init_config
from formulakit.core.exceptions import FormulaError
from formulakit.utils.logger import setup_logging

_service: Any = None


def _svc() -> Any:
    """获取当前进程的安装服务（按已初始化的配置懒加载）"""
    global _service  # noqa: PLW0603
    if _service is None:
        from formulakit.services.install_service import InstallService
        _service = InstallService()
    return _service


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把 FormulaError 转成错误码 + 失败阶段输出，退出码 1"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except FormulaError as e:
            stage = f" [stage={e.stage}]" if e.stage else ""
            click.echo(f"错误 {e.code}{stage}: {e}", err=True)
            for line in _diagnostics(e):
                click.echo(f"  {line}", err=True)
            sys.exit(1)

    return wrapper


def _diagnostics(e: FormulaError) -> list[str]:
    """按异常类型提取诊断信息（摘要 / 退出码 / 输出 / 未满足依赖）"""
    lines: list[str] = []
    for attr in ("expected", "actual", "step_index", "exit_code", "built_path"):
        if hasattr(e, attr):
            lines.append(f"{attr}: {getattr(e, attr)}")
    constraints = getattr(e, "constraints", None)
    if constraints is not None:
        for r in constraints.unmet:
            level = "FATAL" if r.fatal else "WARN"
            lines.append(f"[{level}] {r.dependency} found={r.found_version or '-'}")
    installed = getattr(e, "installed", None)
    if installed:
        lines.append("已安装（未回滚）: " + ", ".join(str(p) for p in installed))
    output = getattr(e, "output", "")
    if output:
        lines.append("output:")
        lines.extend(f"  {ln}" for ln in output.strip().splitlines()[-20:])
    return lines


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default="configs/formulakit.yml",
              help="配置文件路径")
def main(config_path: str) -> None:
    """formulakit - 声明式 formula 构建安装工具"""
    global _service  # noqa: PLW0603
    setup_logging(
        level=os.getenv("FORMULAKIT_LOG_LEVEL", "INFO"),
        json_output=os.getenv("FORMULAKIT_LOG_JSON", "") == "1",
    )
    try:
        init_config(config_path)
    except FormulaError as e:
        raise click.ClickException(f"配置无效: {e}") from e
    _service = None


# 注册各领域子命令
from formulakit.cli.cmd_install import register as _reg_install  # noqa: E402
from formulakit.cli.cmd_formula import register as _reg_formula  # noqa: E402

_reg_install(main)
_reg_formula(main)
