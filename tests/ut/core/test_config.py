"""配置加载测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from formulakit.core import config as cfgmod
from formulakit.core.config import Config, get_config, init_config
from formulakit.core.exceptions import ConfigError


class TestConfig:
    def test_defaults_when_file_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FORMULAKIT_PREFIX", raising=False)
        cfg = Config.from_file(str(tmp_path / "missing.yml"))
        assert cfg.prefix == "/usr/local"
        assert cfg.keep_scratch is False

    def test_load_with_extra(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FORMULAKIT_PREFIX", raising=False)
        f = tmp_path / "cfg.yml"
        f.write_text("prefix: /opt/brew\nbuild_timeout: 600\nmirror: https://m.example\n")
        cfg = Config.from_file(str(f))
        assert cfg.prefix == "/opt/brew"
        assert cfg.build_timeout == 600
        assert cfg.extra == {"mirror": "https://m.example"}

    def test_env_prefix_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        f = tmp_path / "cfg.yml"
        f.write_text("prefix: /opt/brew\n")
        monkeypatch.setenv("FORMULAKIT_PREFIX", str(tmp_path / "env-prefix"))
        assert Config.from_file(str(f)).prefix == str(tmp_path / "env-prefix")

    def test_layout(self, tmp_path: Path) -> None:
        cfg = Config(prefix=str(tmp_path), destinations={
            "man1": "/opt/man/man1", "bin": "tools",
        })
        layout = cfg.layout()
        assert layout["man1"] == Path("/opt/man/man1")
        assert layout["bin"] == tmp_path / "tools"
        assert layout["man8"] == tmp_path / "share" / "man" / "man8"

    def test_unknown_destination_rejected(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("FORMULAKIT_PREFIX", raising=False)
        f = tmp_path / "cfg.yml"
        f.write_text("destinations:\n  apps: /Applications\n")
        with pytest.raises(ConfigError, match="apps"):
            Config.from_file(str(f))

    def test_non_positive_timeout_rejected(self) -> None:
        with pytest.raises(ConfigError, match="build_timeout"):
            Config(build_timeout=0).validate()


def test_init_config_sets_global(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cfgmod, "_current", None)
    monkeypatch.delenv("FORMULAKIT_PREFIX", raising=False)
    f = tmp_path / "cfg.yml"
    f.write_text(f"prefix: {tmp_path}\n")
    init_config(str(f))
    assert get_config().prefix == str(tmp_path)
