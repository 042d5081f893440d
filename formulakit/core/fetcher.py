"""源码包拉取器

职责:
- 下载源码包到下载缓存（缓存命中且校验通过时复用）
- sha256 校验（解压和构建之前，唯一的来源可信保证）
- 解压到独占的临时构建目录，失败时清理该目录
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
import tempfile
import urllib.error
import urllib.request
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

from formulakit.core.exceptions import FetchFailed, IntegrityMismatch
from formulakit.core.models import FormulaDescriptor
from formulakit.utils.fileops import remove_tree
from formulakit.utils.net import url_filename, validate_source_url

logger = logging.getLogger(__name__)

_TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tbz2", ".tar.xz", ".txz")


@dataclass
class FetchResult:
    """拉取结果: scratch_dir 为独占临时目录，buildpath 为实际构建根目录"""

    archive: Path
    scratch_dir: Path
    buildpath: Path


def file_sha256(path: Path) -> str:
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


class ArchiveFetcher:
    """源码包拉取器 - 缓存优先 + 远程下载"""

    def __init__(self, cache_dir: Path, scratch_root: Path) -> None:
        self.cache_dir = cache_dir
        self.scratch_root = scratch_root

    def fetch(self, desc: FormulaDescriptor) -> FetchResult:
        """下载、校验、解压，返回构建目录

        Raises:
            IntegrityMismatch: sha256 不一致（不会创建临时目录）
            FetchFailed: 下载或解压失败（已清理临时目录）
        """
        archive = self.fetch_archive(desc)

        self.scratch_root.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(
            prefix=f"{desc.name}--{desc.version}-", dir=str(self.scratch_root),
        ))
        try:
            self.extract(archive, scratch)
        except (
            tarfile.TarError, zipfile.BadZipFile, zlib.error, EOFError, OSError, ValueError,
        ) as e:
            remove_tree(scratch)
            raise FetchFailed(
                f"解压失败 {archive.name}: {e}", url=desc.source_url,
            ) from e
        except BaseException:
            remove_tree(scratch)
            raise

        buildpath = self._build_root(scratch)
        logger.info("  已解压: %s -> %s", archive.name, buildpath)
        return FetchResult(archive=archive, scratch_dir=scratch, buildpath=buildpath)

    def fetch_archive(self, desc: FormulaDescriptor) -> Path:
        """下载到缓存并校验，返回缓存中的源码包路径"""
        validate_source_url(desc.source_url, ident=desc.ident)

        dest = self.cache_path(desc)
        if dest.exists():
            if file_sha256(dest) == desc.sha256:
                logger.info("  缓存命中: %s", dest)
                return dest
            logger.warning("  缓存文件校验和不符，丢弃后重新下载: %s", dest)
            dest.unlink()

        self._download(desc.source_url, dest)
        self.verify(dest, desc.sha256)
        return dest

    def cache_path(self, desc: FormulaDescriptor) -> Path:
        return self.cache_dir / f"{desc.name}--{desc.version}--{url_filename(desc.source_url)}"

    def _download(self, url: str, dest: Path) -> None:
        """下载到 .incomplete 临时文件，成功后 rename，避免缓存半截文件"""
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + ".incomplete")
        logger.info("  下载: %s", url)
        try:
            urllib.request.urlretrieve(url, str(partial))  # nosec B310
            os.replace(partial, dest)
        except (urllib.error.URLError, OSError, ValueError) as e:
            partial.unlink(missing_ok=True)
            raise FetchFailed(f"下载失败: {url} - {e}", url=url) from e
        logger.info("  已保存: %s", dest)

    @staticmethod
    def verify(path: Path, expected: str) -> None:
        """校验 sha256，不一致时删除文件并抛出 IntegrityMismatch"""
        actual = file_sha256(path)
        if actual != expected:
            path.unlink(missing_ok=True)
            raise IntegrityMismatch(
                f"校验和不匹配 {path.name}: 期望 {expected}, 实际 {actual}",
                expected=expected, actual=actual,
            )
        logger.info("  校验和通过: %s", path.name)

    @staticmethod
    def extract(archive: Path, dest: Path) -> None:
        """按文件名后缀（其次按内容）识别格式解压；非归档文件直接复制进目录"""
        name = archive.name.lower()
        if name.endswith(_TAR_SUFFIXES) or (
            not name.endswith(".zip") and tarfile.is_tarfile(archive)
        ):
            with tarfile.open(archive) as tf:
                tf.extractall(dest, filter="data")
        elif name.endswith(".zip") or zipfile.is_zipfile(archive):
            root = dest.resolve()
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    target = (dest / member).resolve()
                    if target != root and root not in target.parents:
                        raise ValueError(f"归档成员越界: {member}")
                zf.extractall(dest)
        else:
            name = archive.name.split("--", 2)[-1]
            shutil.copy2(archive, dest / name)

    @staticmethod
    def _build_root(scratch: Path) -> Path:
        """归档只有一个顶层目录时进入该目录（如 hear-0.6/）"""
        entries = list(scratch.iterdir())
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return scratch

    @staticmethod
    def release(scratch_dir: Path) -> None:
        """释放临时构建目录"""
        if remove_tree(scratch_dir):
            logger.info("  已清理临时目录: %s", scratch_dir)
