"""测试共享 fixture — 本地源码包 + 假远端 + 隔离配置

整体思路:
  make_archive()  在 tmp_path 中打包一个最小 "tool" 源码包（tar.gz）
  remote          替换 urllib.request.urlretrieve，按 URL 返回本地文件
  make_formula()  生成 formula 字典，默认构建出 build/out/tool 并安装 bin + man1
  config          prefix / 缓存 / 临时目录全部落在 tmp_path 下
"""

from __future__ import annotations

import hashlib
import io
import shutil
import tarfile
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

import pytest

from formulakit.core.config import Config
from formulakit.core.models import HostSnapshot

TOOL_URL = "https://example.com/tool/archive/refs/tags/1.0.tar.gz"

TOOL_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
  echo "tool 1.0"
  exit 0
fi
echo "usage: tool --version" >&2
exit 2
"""

TOOL_MAN = ".TH TOOL 1\n.SH NAME\ntool \\- example\n"


def sha256_of(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _add_file(tf: tarfile.TarFile, name: str, content: str, mode: int) -> None:
    data = content.encode("utf-8")
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    info.mtime = 0
    tf.addfile(info, io.BytesIO(data))


def build_archive(dest: Path, files: dict[str, tuple[str, int]]) -> Path:
    """按 {相对路径: (内容, 权限)} 打包 tar.gz"""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(dest, "w:gz") as tf:
        for name, (content, mode) in files.items():
            _add_file(tf, name, content, mode)
    return dest


@pytest.fixture()
def make_archive(tmp_path: Path):
    """源码包工厂: 默认包含 tool-1.0/tool.sh 与 tool-1.0/tool.1"""

    def _make(name: str = "tool-1.0.tar.gz", files: dict[str, tuple[str, int]] | None = None) -> Path:
        files = files or {
            "tool-1.0/tool.sh": (TOOL_SCRIPT, 0o755),
            "tool-1.0/tool.1": (TOOL_MAN, 0o644),
        }
        return build_archive(tmp_path / "archives" / name, files)

    return _make


class FakeRemote:
    """假远端: URL → 本地文件，记录每次下载"""

    def __init__(self) -> None:
        self.files: dict[str, Path] = {}
        self.calls: list[str] = []

    def publish(self, url: str, path: Path) -> str:
        self.files[url] = path
        return url

    def urlretrieve(self, url: str, filename: str) -> tuple[str, Any]:
        self.calls.append(url)
        src = self.files.get(url)
        if src is None:
            raise urllib.error.URLError(f"no route to {url}")
        shutil.copyfile(src, filename)
        return filename, None


@pytest.fixture()
def remote(monkeypatch: pytest.MonkeyPatch) -> FakeRemote:
    fake = FakeRemote()
    monkeypatch.setattr(urllib.request, "urlretrieve", fake.urlretrieve)
    return fake


@pytest.fixture()
def make_formula():
    """formula 字典工厂，关键字参数覆盖默认字段"""

    def _make(sha256: str, url: str = TOOL_URL, **overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": "tool",
            "desc": "example tool",
            "homepage": "https://example.com/tool",
            "url": url,
            "sha256": sha256,
            "license": "BSD-3-Clause",
            "depends_on": {"xcode": ["10.0", "build"], "macos": "ventura"},
            "build": [
                {"run": ["sh", "-c", "mkdir -p build/out && cp tool.sh build/out/tool"]},
            ],
            "install": [
                {"path": "build/out/tool", "category": "bin"},
                {"path": "tool.1", "category": "man1"},
            ],
            "test": "{bin}/tool --version",
        }
        data.update(overrides)
        return data

    return _make


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    return Config(
        prefix=str(tmp_path / "prefix"),
        formula_dir=str(tmp_path / "Formula"),
        cache_dir=str(tmp_path / "cache"),
        scratch_root=str(tmp_path / "scratch"),
    )


@pytest.fixture()
def mac_host() -> HostSnapshot:
    return HostSnapshot(os_name="macos", os_version="14.2", tools={"xcode": "15.0"})
