"""版本号解析与比较测试"""

from __future__ import annotations

import pytest

from formulakit.core.versions import (
    macos_version,
    parse_version,
    version_from_url,
    version_satisfies,
)


class TestVersionSatisfies:
    @pytest.mark.parametrize(("found", "minimum", "expected"), [
        ("15.0", "10.0", True),
        ("10.0", "10.0", True),
        ("10", "10.0", True),
        ("9.4.1", "10.0", False),
        ("13.6.1", "13", True),
        ("12.7", "13", False),
        ("", "10.0", False),
        ("anything", "", True),
    ])
    def test_compare(self, found: str, minimum: str, expected: bool) -> None:
        assert version_satisfies(found, minimum) is expected

    def test_parse(self) -> None:
        assert parse_version("Xcode 15.0.1") == (15, 0, 1)


class TestVersionFromUrl:
    @pytest.mark.parametrize(("url", "expected"), [
        ("https://github.com/sveinbjornt/hear/archive/refs/tags/0.6.tar.gz", "0.6"),
        ("https://example.com/hear-1.2.zip", "1.2"),
        ("https://example.com/v2.0.3.tgz", "2.0.3"),
        ("https://example.com/latest", ""),
    ])
    def test_derive(self, url: str, expected: str) -> None:
        assert version_from_url(url) == expected


def test_macos_codename() -> None:
    assert macos_version("ventura") == "13"
    assert macos_version("Sonoma") == "14"
    assert macos_version("12.3") == "12.3"
