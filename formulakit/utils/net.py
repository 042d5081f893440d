"""源码地址工具: 协议白名单与缓存文件名"""

from __future__ import annotations

from urllib.parse import unquote, urlparse

from formulakit.core.exceptions import FetchFailed

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_source_url(url: str, *, ident: str = "") -> None:
    """源码包只允许从 http/https 下载，file:// 等协议直接拒绝

    Raises:
        FetchFailed: 协议不在白名单内（不发起任何下载）
    """
    scheme = urlparse(url).scheme
    if scheme not in _ALLOWED_SCHEMES:
        label = f" ({ident})" if ident else ""
        raise FetchFailed(
            f"不允许的 URL 协议 '{scheme}'{label}，仅支持 http/https: {url}",
            url=url,
        )


def url_filename(url: str) -> str:
    """取 URL 路径的最后一段作为文件名，忽略 query；取不到时为 "source" """
    path = unquote(urlparse(url).path).rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name if name not in ("", ".", "..") else "source"
