"""InstallService 单元测试"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest
import yaml

from formulakit.core.exceptions import FormulaNotFound
from formulakit.core.models import HostSnapshot
from formulakit.services.install_service import InstallService


@pytest.fixture()
def svc(config, make_formula, make_archive, remote) -> InstallService:
    archive = make_archive()
    url = remote.publish("https://example.com/tool/archive/refs/tags/1.0.tar.gz", archive)
    sha = hashlib.sha256(archive.read_bytes()).hexdigest()
    formula_dir = Path(config.formula_dir)
    formula_dir.mkdir(parents=True)
    (formula_dir / "tool.yml").write_text(
        yaml.dump(make_formula(sha, url=url)), encoding="utf-8",
    )
    return InstallService(config)


class TestInstallService:
    def test_install(self, svc: InstallService, mac_host: HostSnapshot) -> None:
        report = svc.install("tool", host=mac_host)
        assert report.success
        assert report.descriptor.ident == "tool@1.0"

    def test_unknown_formula_marks_resolve_stage(self, svc: InstallService) -> None:
        with pytest.raises(FormulaNotFound) as exc:
            svc.install("nope")
        assert exc.value.stage == "resolve"

    def test_check_returns_full_report_when_fatal(self, svc: InstallService) -> None:
        host = HostSnapshot(os_name="linux", os_version="6.1")
        report = svc.check("tool", host=host)
        assert not report.ok
        assert len(report.unmet) == 2

    def test_fetch_only(self, svc: InstallService, config) -> None:
        path = svc.fetch("tool")
        assert path.parent == Path(config.cache_dir)
        assert not Path(config.prefix).exists()

    def test_info(self, svc: InstallService) -> None:
        info = svc.info("tool")
        assert info["versions"] == ["1.0"]
        assert info["install"] == ["build/out/tool -> bin/tool", "tool.1 -> man1/tool.1"]
        assert info["test"] == "{bin}/tool --version"

    def test_list_and_test_after_install(self, svc: InstallService, mac_host) -> None:
        assert [f["name"] for f in svc.list_formulas()] == ["tool"]
        svc.install("tool", host=mac_host)
        result = svc.test("tool")
        assert result is not None and result.success
