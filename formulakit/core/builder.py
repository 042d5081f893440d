"""构建执行器

职责:
- 按声明顺序执行构建步骤（run / mkdir），工作目录为 buildpath
- 展开参数与环境变量中的占位符 {buildpath} {prefix} {name} {version}
- 任一步骤非零退出即中止，抛出 BuildStepFailed；不做重试
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path

from formulakit.core.exceptions import BuildStepFailed
from formulakit.core.models import BuildStep, FormulaDescriptor, StepKind
from formulakit.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)

# 诊断输出截断长度
MAX_OUTPUT_CHARS = 4000
EXIT_TIMEOUT = -1
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def expand(value: str, variables: dict[str, str]) -> str:
    """替换 {key} 占位符，未知占位符原样保留"""
    for key, val in variables.items():
        value = value.replace("{" + key + "}", val)
    return value


def _tail(text: str) -> str:
    return text[-MAX_OUTPUT_CHARS:]


class BuildExecutor:
    """构建执行器"""

    def __init__(
        self,
        prefix: Path,
        executor: CommandExecutor | None = None,
        timeout: float | None = None,
    ) -> None:
        self.prefix = prefix
        self.executor = executor or get_executor()
        self.timeout = timeout

    def variables(self, desc: FormulaDescriptor, buildpath: Path) -> dict[str, str]:
        return {
            "buildpath": str(buildpath),
            "prefix": str(self.prefix),
            "name": desc.name,
            "version": desc.version,
        }

    def run(self, desc: FormulaDescriptor, buildpath: Path) -> list[CommandResult]:
        """执行全部构建步骤，返回每个步骤的结果

        Raises:
            BuildStepFailed: 某一步骤非零退出、超时或无法启动
        """
        variables = self.variables(desc, buildpath)
        results: list[CommandResult] = []
        start = time.monotonic()
        for index, step in enumerate(desc.build_steps):
            logger.info("  [%d/%d] %s", index + 1, len(desc.build_steps), step.describe())
            results.append(self._run_step(index, step, buildpath, variables))
        logger.info(
            "构建完成: %s (%d 步, %.1fs)",
            desc.ident, len(results), time.monotonic() - start,
        )
        return results

    def _run_step(
        self, index: int, step: BuildStep, buildpath: Path, variables: dict[str, str],
    ) -> CommandResult:
        if step.kind == StepKind.MKDIR:
            target = Path(expand(step.args[0], variables))
            if not target.is_absolute():
                target = buildpath / target
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise BuildStepFailed(
                    f"构建步骤 {index} 创建目录失败: {target} - {e}",
                    step_index=index, exit_code=1, output=str(e),
                ) from e
            return CommandResult(returncode=0, stdout="", stderr="")

        args = [expand(a, variables) for a in step.args]
        overrides = {k: expand(v, variables) for k, v in step.env}
        env = {**os.environ, **overrides}
        try:
            r = self.executor.execute(
                args, cwd=str(buildpath), env=env, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise BuildStepFailed(
                f"构建步骤 {index} 超时 ({self.timeout}s): {args[0]}",
                step_index=index, exit_code=EXIT_TIMEOUT,
                output=_tail(str(e.output or "")),
            ) from e
        except FileNotFoundError as e:
            raise BuildStepFailed(
                f"构建步骤 {index} 命令不存在: {args[0]}",
                step_index=index, exit_code=EXIT_NOT_FOUND, output=str(e),
            ) from e
        except OSError as e:
            raise BuildStepFailed(
                f"构建步骤 {index} 无法执行: {args[0]} - {e}",
                step_index=index, exit_code=EXIT_NOT_EXECUTABLE, output=str(e),
            ) from e

        if not r.success:
            logger.error("构建步骤 %d 失败 (rc=%d): %s", index, r.returncode, args[0])
            raise BuildStepFailed(
                f"构建步骤 {index} 失败 (rc={r.returncode}): {' '.join(args)}",
                step_index=index, exit_code=r.returncode, output=_tail(r.output),
            )
        return r
