"""安装后自检

执行 formula 的 test 命令（通常是 "{bin}/tool --version"），
非零退出或输出不符合 test_expect 时抛出 PostInstallVerificationFailed。
自检失败只报告，不会卸载已安装的文件。
"""

from __future__ import annotations

import logging
import re
import subprocess
import tempfile
from pathlib import Path

from formulakit.core.builder import expand
from formulakit.core.exceptions import PostInstallVerificationFailed
from formulakit.core.models import FormulaDescriptor
from formulakit.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)


class Verifier:
    """安装后自检执行器"""

    def __init__(
        self,
        layout: dict[str, Path],
        prefix: Path,
        executor: CommandExecutor | None = None,
        timeout: float | None = None,
    ) -> None:
        self.layout = layout
        self.prefix = prefix
        self.executor = executor or get_executor()
        self.timeout = timeout

    def command(self, desc: FormulaDescriptor) -> list[str]:
        """展开 test 命令中的 {bin} {sbin} {prefix} {name} {version}"""
        variables = {
            "bin": str(self.layout["bin"]),
            "sbin": str(self.layout["sbin"]),
            "prefix": str(self.prefix),
            "name": desc.name,
            "version": desc.version,
        }
        return [expand(a, variables) for a in desc.test_command]

    def verify(self, desc: FormulaDescriptor) -> CommandResult | None:
        """执行自检，formula 未定义 test 时跳过并返回 None"""
        if not desc.test_command:
            logger.info("  %s 未定义 test，跳过自检", desc.ident)
            return None

        args = self.command(desc)
        # 在空目录中运行，避免依赖当前工作目录
        with tempfile.TemporaryDirectory(prefix=f"{desc.name}-test-") as cwd:
            try:
                r = self.executor.execute(args, cwd=cwd, timeout=self.timeout)
            except subprocess.TimeoutExpired as e:
                raise PostInstallVerificationFailed(
                    f"{desc.ident} 自检超时 ({self.timeout}s): {' '.join(args)}",
                    exit_code=-1,
                ) from e
            except OSError as e:
                raise PostInstallVerificationFailed(
                    f"{desc.ident} 自检命令无法执行: {args[0]} - {e}",
                    exit_code=127, output=str(e),
                ) from e

        if not r.success:
            raise PostInstallVerificationFailed(
                f"{desc.ident} 自检失败 (rc={r.returncode}): {' '.join(args)}",
                exit_code=r.returncode, output=r.output,
            )
        if desc.test_expect and not re.search(desc.test_expect, r.output):
            raise PostInstallVerificationFailed(
                f"{desc.ident} 自检输出不符合预期 /{desc.test_expect}/",
                exit_code=r.returncode, output=r.output,
            )
        logger.info("  自检通过: %s", " ".join(args))
        return r
