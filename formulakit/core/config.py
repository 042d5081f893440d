"""集中配置管理

安装前缀、formula 目录、下载缓存、临时构建目录、超时等统一入口。
支持从 YAML 文件加载 + 环境变量覆盖 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path

from formulakit.core.exceptions import ConfigError
from formulakit.core.models import DESTINATION_DIRS
from formulakit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

PREFIX_ENV = "FORMULAKIT_PREFIX"


@dataclass
class Config:
    """框架全局配置"""

    # 目录
    prefix: str = "/usr/local"
    formula_dir: str = "Formula"
    cache_dir: str = "~/.cache/formulakit/downloads"
    scratch_root: str = ""  # 空表示系统临时目录

    # 执行
    keep_scratch: bool = False
    build_timeout: float | None = None  # 秒，None 表示不限时
    test_timeout: float | None = 60

    # 安装类别目录覆盖，如 {"man1": "/opt/man/man1"}，相对路径基于 prefix
    destinations: dict[str, str] = field(default_factory=dict)

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/formulakit.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认；环境变量优先于文件"""
        data = load_yaml(path)
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        env_prefix = os.getenv(PREFIX_ENV, "")
        if env_prefix:
            cfg.prefix = env_prefix
        cfg.validate()
        return cfg

    def validate(self) -> None:
        self.destinations = dict(self.destinations or {})
        unknown = sorted(set(self.destinations) - set(DESTINATION_DIRS))
        if unknown:
            raise ConfigError(
                f"destinations 包含未知安装类别: {unknown}，可用: {sorted(DESTINATION_DIRS)}"
            )
        for key in ("build_timeout", "test_timeout"):
            value = getattr(self, key)
            if value is not None and value <= 0:
                raise ConfigError(f"{key} 必须为正数，实际为 {value}")

    @property
    def prefix_path(self) -> Path:
        return Path(self.prefix).expanduser()

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()

    @property
    def scratch_path(self) -> Path:
        return Path(self.scratch_root or tempfile.gettempdir()).expanduser()

    def layout(self) -> dict[str, Path]:
        """安装类别 → 目标目录"""
        result: dict[str, Path] = {}
        for category, rel in DESTINATION_DIRS.items():
            override = self.destinations.get(category, "")
            target = Path(override).expanduser() if override else Path(rel)
            result[category] = target if target.is_absolute() else self.prefix_path / target
        return result

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/formulakit.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s (prefix=%s)", path, _current.prefix)
    return _current
