"""统一异常体系

所有业务异常继承 FormulaError，每个流水线阶段只抛出自己的异常类型。
流水线在抛出前填充 stage / report，CLI 据此输出失败阶段与诊断信息。
"""

from __future__ import annotations

from typing import Any


class FormulaError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.stage: str = ""
        self.report: Any = None


class ConfigError(FormulaError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ExecutionError(FormulaError):
    """阶段内的文件或进程操作失败（权限、磁盘空间等）

    installed 记录失败前已经安装成功的文件。
    """

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, installed: list[Any] | None = None) -> None:
        super().__init__(message)
        self.installed = installed or []


class FormulaNotFound(FormulaError):
    """指定的 formula 或版本不存在"""

    code = "FORMULA_NOT_FOUND"


# =========================================================================
# 安装流水线各阶段异常
# =========================================================================


class MalformedDescriptor(FormulaError):
    """formula 缺少必填字段（url / sha256 / 构建步骤）"""

    code = "MALFORMED_DESCRIPTOR"


class UnsupportedConstraint(FormulaError):
    """依赖阶段或安装目标类别不在可识别范围内"""

    code = "UNSUPPORTED_CONSTRAINT"


class UnmetBuildDependency(FormulaError):
    """构建期依赖未满足，附带完整的约束检查报告"""

    code = "UNMET_BUILD_DEPENDENCY"

    def __init__(self, message: str, constraints: Any = None) -> None:
        super().__init__(message)
        self.constraints = constraints


class FetchFailed(FormulaError):
    """源码包下载或解压失败"""

    code = "FETCH_FAILED"

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class IntegrityMismatch(FormulaError):
    """下载内容的 sha256 与 formula 声明不一致"""

    code = "INTEGRITY_MISMATCH"

    def __init__(self, message: str, expected: str, actual: str) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class BuildStepFailed(FormulaError):
    """构建步骤返回非零退出码"""

    code = "BUILD_STEP_FAILED"

    def __init__(
        self, message: str, step_index: int, exit_code: int, output: str = "",
    ) -> None:
        super().__init__(message)
        self.step_index = step_index
        self.exit_code = exit_code
        self.output = output


class MissingBuildArtifact(FormulaError):
    """安装映射引用的构建产物不存在

    installed 记录失败前已经安装成功的文件（安装不做回滚）。
    """

    code = "MISSING_BUILD_ARTIFACT"

    def __init__(
        self, message: str, built_path: str, installed: list[Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.built_path = built_path
        self.installed = installed or []


class PostInstallVerificationFailed(FormulaError):
    """安装后自检命令失败（不会自动卸载）"""

    code = "POST_INSTALL_VERIFICATION_FAILED"

    def __init__(self, message: str, exit_code: int, output: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class InstallCancelled(FormulaError):
    """阶段之间收到取消信号"""

    code = "INSTALL_CANCELLED"
