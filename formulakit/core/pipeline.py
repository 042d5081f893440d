"""安装流水线 - 协调 6 个阶段

阶段顺序（严格串行，前一阶段成功才进入下一阶段）:
1. resolve - formula 已解析为 FormulaDescriptor
2. check   - 依赖约束检查
3. fetch   - 下载 + sha256 校验 + 解压到临时目录
4. build   - 执行构建步骤
5. install - 复制构建产物到目标目录
6. verify  - 安装后自检

任一阶段失败即终止，抛出的 FormulaError 带有 stage 与 report；
临时目录在 finally 中释放（keep_scratch 时保留）。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from formulakit.core.builder import BuildExecutor
from formulakit.core.config import Config, get_config
from formulakit.core.constraints import ConstraintChecker, HostProbe
from formulakit.core.exceptions import (
    ExecutionError,
    FormulaError,
    InstallCancelled,
    MissingBuildArtifact,
    UnmetBuildDependency,
)
from formulakit.core.fetcher import ArchiveFetcher, FetchResult
from formulakit.core.installer import Installer
from formulakit.core.models import (
    FormulaDescriptor,
    HostSnapshot,
    InstallReport,
    InstallStatus,
)
from formulakit.core.verifier import Verifier
from formulakit.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

STAGES = ("resolve", "check", "fetch", "build", "install", "verify")

T = TypeVar("T")


class InstallPipeline:
    """formula 安装流水线"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        probe: HostProbe | None = None,
    ) -> None:
        self.config = config or get_config()
        layout = self.config.layout()
        prefix = self.config.prefix_path
        self.probe = probe or HostProbe(executor)
        self.checker = ConstraintChecker()
        self.fetcher = ArchiveFetcher(self.config.cache_path, self.config.scratch_path)
        self.builder = BuildExecutor(prefix, executor, timeout=self.config.build_timeout)
        self.installer = Installer(layout)
        self.verifier = Verifier(layout, prefix, executor, timeout=self.config.test_timeout)

    def run(
        self,
        desc: FormulaDescriptor,
        *,
        host: HostSnapshot | None = None,
        cancel: threading.Event | None = None,
        keep_scratch: bool | None = None,
    ) -> InstallReport:
        """执行完整安装流程，成功时 report.status == verified"""
        keep = self.config.keep_scratch if keep_scratch is None else keep_scratch
        report = InstallReport(descriptor=desc)
        report.steps.append({"stage": "resolve", "status": "done", "formula": desc.ident})
        logger.info("[Stage 1] formula 已解析: %s", desc.ident, extra=self._ctx(desc, "resolve"))

        fetched: FetchResult | None = None
        try:
            snapshot = host
            report.constraints = self._stage(
                report, "check", cancel,
                lambda: self.checker.check(
                    desc, snapshot or self.probe.snapshot(d.name for d in desc.dependencies),
                ),
            )
            fetched = self._stage(report, "fetch", cancel, lambda: self.fetcher.fetch(desc))
            report.scratch_dir = str(fetched.scratch_dir)
            buildpath = fetched.buildpath
            self._stage(report, "build", cancel, lambda: self.builder.run(desc, buildpath))
            report.installed = self._stage(
                report, "install", cancel, lambda: self.installer.install(desc, buildpath),
            )
            self._stage(report, "verify", cancel, lambda: self.verifier.verify(desc))
        finally:
            if fetched is not None:
                if keep:
                    logger.info("保留临时目录: %s", fetched.scratch_dir)
                else:
                    self.fetcher.release(fetched.scratch_dir)

        report.status = InstallStatus.VERIFIED
        logger.info(
            "安装完成: %s (已安装 %d 个文件, 自检通过)", desc.ident, len(report.installed),
            extra=self._ctx(desc, "verify"),
        )
        return report

    def _stage(
        self,
        report: InstallReport,
        stage: str,
        cancel: threading.Event | None,
        action: Callable[[], T],
    ) -> T:
        """执行单个阶段: 检查取消信号 → 执行 → 记录步骤；失败时填充报告并重新抛出"""
        desc = report.descriptor
        number = STAGES.index(stage) + 1
        try:
            if cancel is not None and cancel.is_set():
                raise InstallCancelled(f"{desc.ident} 在 {stage} 阶段前被取消")
            logger.info("[Stage %d] %s: %s", number, stage, desc.ident, extra=self._ctx(desc, stage))
            result = action()
        except FormulaError as e:
            self._fail(report, stage, e)
            raise
        report.steps.append({"stage": stage, "status": "done", **self._detail(stage, result)})
        return result

    @staticmethod
    def _detail(stage: str, result: Any) -> dict[str, Any]:
        if stage == "check":
            return {
                "checked": len(result.results),
                "advisory": [str(r.dependency) for r in result.advisory],
            }
        if stage == "fetch":
            return {"archive": str(result.archive), "buildpath": str(result.buildpath)}
        if stage == "build":
            return {"steps": len(result)}
        if stage == "install":
            return {"installed": [str(p) for p in result]}
        if stage == "verify" and result is not None:
            return {"output": result.output.strip()[:200]}
        return {}

    @staticmethod
    def _fail(report: InstallReport, stage: str, error: FormulaError) -> None:
        cancelled = isinstance(error, InstallCancelled)
        report.status = InstallStatus.CANCELLED if cancelled else InstallStatus.FAILED
        report.failed_stage = stage
        report.error = str(error)
        if isinstance(error, UnmetBuildDependency):
            report.constraints = error.constraints
        if isinstance(error, (MissingBuildArtifact, ExecutionError)):
            report.installed = list(error.installed)
        report.steps.append({
            "stage": stage,
            "status": "cancelled" if cancelled else "failed",
            "error": error.code,
            "message": str(error),
        })
        error.stage = stage
        error.report = report
        logger.error("[%s] %s 失败: %s", stage, report.descriptor.ident, error)

    @staticmethod
    def _ctx(desc: FormulaDescriptor, stage: str) -> dict[str, str]:
        return {"formula": desc.ident, "stage": stage}
