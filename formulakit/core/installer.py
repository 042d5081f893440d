"""安装器

按 install 映射把构建产物复制到目标类别目录。
安装不是事务性的: 某个映射失败时，之前已复制的文件保留，
并通过异常的 installed 属性显式返回给调用方。
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from formulakit.core.exceptions import (
    ExecutionError,
    MalformedDescriptor,
    MissingBuildArtifact,
)
from formulakit.core.models import (
    EXECUTABLE_CATEGORIES,
    FormulaDescriptor,
    InstallMapping,
)
from formulakit.utils.fileops import atomic_copy

logger = logging.getLogger(__name__)


def _within(path: Path, root: Path) -> bool:
    return path == root or root in path.parents


class Installer:
    """构建产物安装器"""

    def __init__(self, layout: dict[str, Path]) -> None:
        self.layout = layout

    def destination(self, mapping: InstallMapping) -> Path:
        """目标路径，必须直接位于类别目录下"""
        base = self.layout[mapping.category]
        dest = base / mapping.dest_name
        if dest.parent != base or mapping.dest_name in ("", ".", ".."):
            raise MalformedDescriptor(
                f"安装目标越界: {mapping.dest_name!r} 不在 {base} 下",
            )
        return dest

    def source(self, mapping: InstallMapping, buildpath: Path) -> Path:
        """构建产物路径，解析符号链接后必须仍在 buildpath 内"""
        root = buildpath.resolve()
        src = (buildpath / mapping.built_path).resolve()
        if not _within(src, root) or src == root:
            raise MalformedDescriptor(
                f"构建产物路径越界: {mapping.built_path} 不在 {buildpath} 下",
            )
        return src

    def install(self, desc: FormulaDescriptor, buildpath: Path) -> list[Path]:
        """逐条安装，返回已安装的目标路径

        Raises:
            MalformedDescriptor: 源或目标路径越界（不复制）
            MissingBuildArtifact: 构建产物不存在（installed 为此前已安装的路径）
            ExecutionError: 复制失败，如权限不足（installed 同上）
        """
        installed: list[Path] = []
        for mapping in desc.install_mappings:
            dest = self.destination(mapping)
            src = self.source(mapping, buildpath)
            if not src.exists():
                logger.error(
                    "构建产物不存在: %s (已安装 %d 个)", mapping.built_path, len(installed),
                )
                raise MissingBuildArtifact(
                    f"{desc.ident} 构建产物不存在: {mapping.built_path}",
                    built_path=mapping.built_path, installed=installed,
                )
            try:
                self._copy(src, dest, executable=mapping.category in EXECUTABLE_CATEGORIES)
            except (OSError, shutil.Error) as e:
                logger.error("安装失败: %s -> %s: %s", mapping.built_path, dest, e)
                raise ExecutionError(
                    f"{desc.ident} 安装 {mapping.built_path} 到 {dest} 失败: {e}",
                    installed=installed,
                ) from e
            installed.append(dest)
            logger.info("  %s -> %s", mapping.built_path, dest)
        return installed

    @staticmethod
    def _copy(src: Path, dest: Path, *, executable: bool) -> None:
        if src.is_dir():
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)
            return
        atomic_copy(src, dest, executable=executable)
