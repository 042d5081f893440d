"""核心数据模型

formula 描述、主机快照、约束检查报告、安装报告集中定义。
FormulaDescriptor 及其组成部分均为不可变数据类：解析一次，执行期间不修改。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# =========================================================================
# 枚举
# =========================================================================


class Phase(str, Enum):
    """依赖生效阶段"""
    BUILD = "build"
    RUNTIME = "runtime"


class StepKind(str, Enum):
    """构建步骤类型"""
    RUN = "run"
    MKDIR = "mkdir"


class InstallStatus(str, Enum):
    """安装流水线终态"""
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    CANCELLED = "cancelled"


# 安装目标类别 → 相对 prefix 的目录
DESTINATION_DIRS: dict[str, str] = {
    "bin": "bin",
    "sbin": "sbin",
    "lib": "lib",
    "libexec": "libexec",
    "include": "include",
    "share": "share",
    "etc": "etc",
    "man": "share/man",
    **{f"man{n}": f"share/man/man{n}" for n in range(1, 9)},
}

# 安装后需要可执行权限的类别
EXECUTABLE_CATEGORIES = frozenset(("bin", "sbin", "libexec"))


# =========================================================================
# formula 描述
# =========================================================================


@dataclass(frozen=True)
class Dependency:
    """依赖约束: name >= min_version，在 phase 阶段生效"""

    name: str
    min_version: str = ""
    phase: Phase = Phase.RUNTIME

    def __str__(self) -> str:
        ver = f" >= {self.min_version}" if self.min_version else ""
        return f"{self.name}{ver} ({self.phase.value})"


@dataclass(frozen=True)
class BuildStep:
    """单个构建步骤

    kind=run 时 args 为完整命令行（第一个元素是可执行文件）；
    kind=mkdir 时 args 只有一个目录路径。
    """

    kind: StepKind
    args: tuple[str, ...]
    env: tuple[tuple[str, str], ...] = ()

    @property
    def env_overrides(self) -> dict[str, str]:
        return dict(self.env)

    def describe(self) -> str:
        if self.kind == StepKind.MKDIR:
            return f"mkdir {self.args[0]}"
        return " ".join(self.args)


@dataclass(frozen=True)
class InstallMapping:
    """构建产物 → 安装目标类别，target_name 为空时保留原文件名"""

    built_path: str
    category: str
    target_name: str = ""

    @property
    def dest_name(self) -> str:
        return self.target_name or Path(self.built_path).name


@dataclass(frozen=True)
class FormulaDescriptor:
    """单个 formula 某一版本的完整描述"""

    name: str
    version: str
    source_url: str
    sha256: str
    build_steps: tuple[BuildStep, ...]
    description: str = ""
    homepage: str = ""
    license: str = ""
    dependencies: tuple[Dependency, ...] = ()
    install_mappings: tuple[InstallMapping, ...] = ()
    test_command: tuple[str, ...] = ()
    test_expect: str = ""

    @property
    def ident(self) -> str:
        return f"{self.name}@{self.version}"

    def summary(self) -> dict[str, Any]:
        """格式化为字典，用于 CLI 展示"""
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "homepage": self.homepage,
            "license": self.license,
            "url": self.source_url,
            "sha256": self.sha256,
            "depends_on": [str(d) for d in self.dependencies],
            "build": [s.describe() for s in self.build_steps],
            "install": [
                f"{m.built_path} -> {m.category}/{m.dest_name}"
                for m in self.install_mappings
            ],
            "test": " ".join(self.test_command),
        }


# =========================================================================
# 主机快照与约束检查
# =========================================================================


@dataclass
class HostSnapshot:
    """主机能力快照: 操作系统版本 + 已安装工具链版本"""

    os_name: str = ""
    os_version: str = ""
    tools: dict[str, str] = field(default_factory=dict)


@dataclass
class ConstraintResult:
    """单个依赖的检查结果"""

    dependency: Dependency
    satisfied: bool
    found_version: str = ""

    @property
    def fatal(self) -> bool:
        """构建期依赖未满足为致命错误"""
        return not self.satisfied and self.dependency.phase == Phase.BUILD

    @property
    def advisory(self) -> bool:
        """运行期依赖未满足仅作告警"""
        return not self.satisfied and self.dependency.phase == Phase.RUNTIME


@dataclass
class ConstraintReport:
    """约束检查报告（按声明顺序保存全部结果）"""

    results: list[ConstraintResult] = field(default_factory=list)

    @property
    def fatal(self) -> list[ConstraintResult]:
        return [r for r in self.results if r.fatal]

    @property
    def advisory(self) -> list[ConstraintResult]:
        return [r for r in self.results if r.advisory]

    @property
    def unmet(self) -> list[ConstraintResult]:
        return [r for r in self.results if not r.satisfied]

    @property
    def ok(self) -> bool:
        return not self.fatal


# =========================================================================
# 安装报告
# =========================================================================


@dataclass
class InstallReport:
    """一次安装流水线的执行报告"""

    descriptor: FormulaDescriptor
    status: InstallStatus = InstallStatus.PENDING
    failed_stage: str = ""
    error: str = ""
    constraints: ConstraintReport | None = None
    scratch_dir: str = ""
    installed: list[Path] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == InstallStatus.VERIFIED
