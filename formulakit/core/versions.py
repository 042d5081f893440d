"""版本号解析与比较

formula 中出现的版本号都是点分数字（10.0、13.4.1、0.6），
比较时按数字段逐段比较，缺省段补 0。
"""

from __future__ import annotations

import re

_NUM_RE = re.compile(r"\d+")
_VERSION_IN_TEXT_RE = re.compile(r"(\d+(?:\.\d+)+|\d+)")
_ARCHIVE_SUFFIXES = (".tar.gz", ".tar.bz2", ".tar.xz", ".tgz", ".tbz2", ".zip", ".tar")

# macOS 代号 → 主版本号
MACOS_CODENAMES: dict[str, str] = {
    "high_sierra": "10.13",
    "mojave": "10.14",
    "catalina": "10.15",
    "big_sur": "11",
    "monterey": "12",
    "ventura": "13",
    "sonoma": "14",
    "sequoia": "15",
}


def parse_version(text: str) -> tuple[int, ...]:
    """把版本字符串解析成数字元组，无数字时返回空元组"""
    return tuple(int(n) for n in _NUM_RE.findall(str(text)))


def version_satisfies(found: str, minimum: str) -> bool:
    """found >= minimum（空的 minimum 视为无版本要求）"""
    want = parse_version(minimum)
    if not want:
        return True
    have = parse_version(found)
    if not have:
        return False
    width = max(len(have), len(want))
    return have + (0,) * (width - len(have)) >= want + (0,) * (width - len(want))


def version_sort_key(text: str) -> tuple[tuple[int, ...], str]:
    return parse_version(text), text


def macos_version(value: str) -> str:
    """macOS 代号转数字版本，非代号原样返回"""
    return MACOS_CODENAMES.get(str(value).lower(), str(value))


def version_from_url(url: str) -> str:
    """从下载地址文件名推断版本号

    示例:
        .../archive/refs/tags/0.6.tar.gz  -> "0.6"
        .../hear-1.2.zip                  -> "1.2"
    """
    basename = url.rstrip("/").rsplit("/", 1)[-1]
    for suffix in _ARCHIVE_SUFFIXES:
        if basename.endswith(suffix):
            basename = basename[: -len(suffix)]
            break
    m = _VERSION_IN_TEXT_RE.search(basename)
    return m.group(1) if m else ""
