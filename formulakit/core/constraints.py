"""依赖约束检查

职责:
- HostProbe: 探测当前主机的操作系统版本与工具链版本
- ConstraintChecker: 按声明顺序检查全部依赖（不短路），
  构建期依赖未满足 → UnmetBuildDependency，运行期依赖未满足 → 仅告警
"""

from __future__ import annotations

import logging
import platform
import re
import subprocess
from collections.abc import Iterable

from formulakit.core.exceptions import UnmetBuildDependency
from formulakit.core.models import (
    ConstraintReport,
    ConstraintResult,
    Dependency,
    FormulaDescriptor,
    HostSnapshot,
)
from formulakit.core.versions import version_satisfies
from formulakit.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)*)")

# 工具名 → 查询版本的命令，未列出的工具使用 "<name> --version"
_VERSION_COMMANDS: dict[str, list[str]] = {
    "xcode": ["xcodebuild", "-version"],
}


class HostProbe:
    """主机能力探测"""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor or get_executor()

    def snapshot(self, tool_names: Iterable[str] = ()) -> HostSnapshot:
        """采集主机快照，只探测 tool_names 中列出的工具"""
        os_name, os_version = self._os_info()
        tools: dict[str, str] = {}
        for name in tool_names:
            if name == "macos":
                continue
            found = self.tool_version(name)
            if found:
                tools[name] = found
        logger.info("主机快照: %s %s, 工具: %s", os_name, os_version or "-", tools)
        return HostSnapshot(os_name=os_name, os_version=os_version, tools=tools)

    @staticmethod
    def _os_info() -> tuple[str, str]:
        mac_ver = platform.mac_ver()[0]
        if mac_ver:
            return "macos", mac_ver
        return platform.system().lower(), platform.release()

    def tool_version(self, name: str) -> str:
        """执行版本查询命令并提取第一个版本号，工具不存在返回空串"""
        cmd = _VERSION_COMMANDS.get(name, [name, "--version"])
        try:
            r = self.executor.execute(cmd, timeout=30)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("探测工具失败 %s: %s", name, e)
            return ""
        if not r.success:
            return ""
        m = _VERSION_RE.search(r.output)
        return m.group(1) if m else ""


class ConstraintChecker:
    """依赖约束检查器"""

    def check(
        self, descriptor: FormulaDescriptor, host: HostSnapshot,
    ) -> ConstraintReport:
        """检查全部依赖并返回完整报告

        Raises:
            UnmetBuildDependency: 任一构建期依赖未满足（报告中包含全部结果）
        """
        report = ConstraintReport()
        for dep in descriptor.dependencies:
            result = self.evaluate(dep, host)
            report.results.append(result)
            if result.satisfied:
                logger.info("  依赖满足: %s (found=%s)", dep, result.found_version)
            elif result.fatal:
                logger.error(
                    "  构建依赖未满足: %s (found=%s)", dep, result.found_version or "无",
                )
            else:
                logger.warning(
                    "  运行依赖未满足（仅告警）: %s (found=%s)",
                    dep, result.found_version or "无",
                )

        if report.fatal:
            unmet = ", ".join(str(r.dependency) for r in report.fatal)
            raise UnmetBuildDependency(
                f"{descriptor.ident} 构建依赖未满足: {unmet}",
                constraints=report,
            )
        return report

    @staticmethod
    def evaluate(dep: Dependency, host: HostSnapshot) -> ConstraintResult:
        """检查单个依赖"""
        if dep.name == "macos":
            if host.os_name != "macos":
                return ConstraintResult(dependency=dep, satisfied=False)
            found = host.os_version
        else:
            found = host.tools.get(dep.name, "")
            if not found:
                return ConstraintResult(dependency=dep, satisfied=False)
        return ConstraintResult(
            dependency=dep,
            satisfied=version_satisfies(found, dep.min_version),
            found_version=found,
        )
