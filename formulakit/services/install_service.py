"""安装服务 — CLI 与流水线之间的门面

负责从注册表解析 formula（resolve 阶段），再交给 InstallPipeline 执行。
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any

from formulakit.core.config import Config, get_config
from formulakit.core.exceptions import FormulaError, UnmetBuildDependency
from formulakit.core.models import (
    ConstraintReport,
    FormulaDescriptor,
    HostSnapshot,
    InstallReport,
)
from formulakit.core.pipeline import InstallPipeline
from formulakit.core.registry import FormulaRegistry
from formulakit.utils.shell import CommandExecutor, CommandResult

logger = logging.getLogger(__name__)


class InstallService:
    """formula 安装服务"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        registry: FormulaRegistry | None = None,
    ) -> None:
        self.config = config or get_config()
        self.registry = registry or FormulaRegistry(self.config.formula_dir)
        self.pipeline = InstallPipeline(self.config, executor=executor)

    def resolve(self, name: str, version: str | None = None) -> FormulaDescriptor:
        """解析 formula，失败时异常标记为 resolve 阶段"""
        try:
            return self.registry.get(name, version)
        except FormulaError as e:
            e.stage = "resolve"
            raise

    def install(
        self,
        name: str,
        version: str | None = None,
        *,
        host: HostSnapshot | None = None,
        keep_scratch: bool | None = None,
        cancel: threading.Event | None = None,
    ) -> InstallReport:
        desc = self.resolve(name, version)
        return self.pipeline.run(desc, host=host, cancel=cancel, keep_scratch=keep_scratch)

    def check(
        self, name: str, version: str | None = None, host: HostSnapshot | None = None,
    ) -> ConstraintReport:
        """只做约束检查，构建依赖未满足时也返回完整报告"""
        desc = self.resolve(name, version)
        snapshot = host or self.pipeline.probe.snapshot(d.name for d in desc.dependencies)
        try:
            return self.pipeline.checker.check(desc, snapshot)
        except UnmetBuildDependency as e:
            return e.constraints

    def fetch(self, name: str, version: str | None = None) -> Path:
        """只下载并校验源码包，返回缓存路径"""
        desc = self.resolve(name, version)
        return self.pipeline.fetcher.fetch_archive(desc)

    def test(self, name: str, version: str | None = None) -> CommandResult | None:
        """对已安装的 formula 重新执行自检"""
        desc = self.resolve(name, version)
        return self.pipeline.verifier.verify(desc)

    def info(self, name: str, version: str | None = None) -> dict[str, Any]:
        desc = self.resolve(name, version)
        info = desc.summary()
        info["versions"] = self.registry.versions(name)
        return info

    def list_formulas(self) -> list[dict[str, Any]]:
        return self.registry.list_all()
