"""formula 注册表

职责:
- 扫描 formula 目录下的 YAML 文件（每个文件描述一个 formula 的一个版本）
- 以 (name, version) 为键保存不可变描述，不同版本互不影响
- 按名称查找最新版本 / 指定版本
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from formulakit.core.descriptor import parse_descriptor
from formulakit.core.exceptions import (
    FormulaNotFound,
    MalformedDescriptor,
    UnsupportedConstraint,
)
from formulakit.core.models import FormulaDescriptor
from formulakit.core.versions import version_sort_key
from formulakit.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

_SUFFIXES = (".yml", ".yaml")


class FormulaRegistry:
    """formula 注册表 - 从目录加载全部 formula 版本"""

    def __init__(self, formula_dir: str | Path) -> None:
        self.formula_dir = Path(formula_dir)
        self._formulas: dict[tuple[str, str], FormulaDescriptor] | None = None

    def load(self) -> dict[tuple[str, str], FormulaDescriptor]:
        """加载目录下全部 formula 文件（结果缓存，重复调用不重复解析）"""
        if self._formulas is not None:
            return self._formulas

        formulas: dict[tuple[str, str], FormulaDescriptor] = {}
        if not self.formula_dir.is_dir():
            logger.warning("formula 目录不存在: %s", self.formula_dir)
            self._formulas = formulas
            return formulas

        files = sorted(
            p for p in self.formula_dir.rglob("*")
            if p.is_file() and p.suffix in _SUFFIXES
        )
        for path in files:
            desc = self.load_file(path)
            key = (desc.name, desc.version)
            if key in formulas:
                raise MalformedDescriptor(
                    f"formula 重复定义: {desc.ident} ({path})",
                )
            formulas[key] = desc

        logger.info("已加载 %d 个 formula 版本 (%s)", len(formulas), self.formula_dir)
        self._formulas = formulas
        return formulas

    @staticmethod
    def load_file(path: str | Path) -> FormulaDescriptor:
        """解析单个 formula 文件，name 缺省时取文件名"""
        p = Path(path)
        try:
            data = load_yaml(p)
        except (yaml.YAMLError, ValueError, OSError) as e:
            raise MalformedDescriptor(f"{p}: 无法读取 formula 文件: {e}") from e
        if not data:
            raise MalformedDescriptor(f"formula 文件为空或格式无效: {p}")
        try:
            return parse_descriptor(data, default_name=p.stem.split("@", 1)[0])
        except MalformedDescriptor as e:
            raise MalformedDescriptor(f"{p}: {e}") from e
        except UnsupportedConstraint as e:
            raise UnsupportedConstraint(f"{p}: {e}") from e

    def names(self) -> list[str]:
        return sorted({name for name, _ in self.load()})

    def versions(self, name: str) -> list[str]:
        """列出某个 formula 的全部版本（从旧到新）"""
        found = [ver for n, ver in self.load() if n == name]
        if not found:
            raise FormulaNotFound(
                f"formula '{name}' 不存在。可用: {self.names()}"
            )
        return sorted(found, key=version_sort_key)

    def get(self, name: str, version: str | None = None) -> FormulaDescriptor:
        """获取指定版本，不指定版本时返回最新版本"""
        versions = self.versions(name)
        ver = version or versions[-1]
        desc = self.load().get((name, ver))
        if desc is None:
            raise FormulaNotFound(
                f"formula '{name}' 没有版本 {ver}。已知版本: {versions}"
            )
        return desc

    def list_all(self) -> list[dict[str, Any]]:
        """格式化列表用于查询，每个 formula 一行（附全部版本）"""
        results = []
        for name in self.names():
            versions = self.versions(name)
            latest = self.get(name)
            results.append({
                "name": name,
                "version": latest.version,
                "versions": versions,
                "description": latest.description,
            })
        return results
