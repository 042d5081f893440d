"""formula 注册表测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from formulakit.core.exceptions import (
    FormulaNotFound,
    MalformedDescriptor,
    UnsupportedConstraint,
)
from formulakit.core.registry import FormulaRegistry

SHA = "a6487df045a031c5aae6bfdcb6f9feba187d9456841242aa2aaf31d854a974ca"


def _write(path: Path, version: str, **extra) -> Path:
    data = {
        "url": f"https://example.com/hear/archive/refs/tags/{version}.tar.gz",
        "sha256": SHA,
        "build": [{"run": ["make"]}],
        **extra,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


@pytest.fixture()
def formula_dir(tmp_path: Path) -> Path:
    d = tmp_path / "Formula"
    _write(d / "hear@0.5.yml", "0.5", desc="old")
    _write(d / "hear.yml", "0.6", desc="current")
    _write(d / "hear@0.10.yml", "0.10", desc="newest")
    _write(d / "other" / "tool.yaml", "1.0")
    return d


class TestFormulaRegistry:
    def test_versions_sorted_numerically(self, formula_dir: Path) -> None:
        reg = FormulaRegistry(formula_dir)
        assert reg.versions("hear") == ["0.5", "0.6", "0.10"]

    def test_get_latest(self, formula_dir: Path) -> None:
        reg = FormulaRegistry(formula_dir)
        assert reg.get("hear").version == "0.10"

    def test_get_specific_version(self, formula_dir: Path) -> None:
        reg = FormulaRegistry(formula_dir)
        d = reg.get("hear", "0.5")
        assert d.description == "old"
        # 不同版本是互不相关的独立实例
        assert d is not reg.get("hear", "0.6")

    def test_name_from_filename(self, formula_dir: Path) -> None:
        reg = FormulaRegistry(formula_dir)
        assert reg.names() == ["hear", "tool"]

    def test_unknown_formula(self, formula_dir: Path) -> None:
        with pytest.raises(FormulaNotFound, match="不存在"):
            FormulaRegistry(formula_dir).get("nope")

    def test_unknown_version(self, formula_dir: Path) -> None:
        with pytest.raises(FormulaNotFound, match="没有版本 9.9"):
            FormulaRegistry(formula_dir).get("hear", "9.9")

    def test_list_all(self, formula_dir: Path) -> None:
        items = FormulaRegistry(formula_dir).list_all()
        hear = next(i for i in items if i["name"] == "hear")
        assert hear["version"] == "0.10"
        assert hear["versions"] == ["0.5", "0.6", "0.10"]

    def test_missing_dir_is_empty(self, tmp_path: Path) -> None:
        assert FormulaRegistry(tmp_path / "none").load() == {}

    def test_duplicate_version_rejected(self, formula_dir: Path) -> None:
        _write(formula_dir / "hear-copy.yml", "0.6", name="hear")
        with pytest.raises(MalformedDescriptor, match="重复定义"):
            FormulaRegistry(formula_dir).load()

    def test_malformed_file_names_path(self, tmp_path: Path) -> None:
        bad = tmp_path / "Formula" / "bad.yml"
        bad.parent.mkdir()
        bad.write_text("url: https://example.com/bad-1.0.tar.gz\n", encoding="utf-8")
        with pytest.raises(MalformedDescriptor, match="bad.yml"):
            FormulaRegistry(bad.parent).load()

    def test_broken_yaml_reported_as_malformed(self, formula_dir: Path) -> None:
        (formula_dir / "broken.yml").write_text("name: [unclosed\n", encoding="utf-8")
        with pytest.raises(MalformedDescriptor, match="broken.yml") as exc:
            FormulaRegistry(formula_dir).load()
        assert isinstance(exc.value.__cause__, yaml.YAMLError)

    def test_oversize_file_reported_as_malformed(self, formula_dir: Path, monkeypatch) -> None:
        monkeypatch.setattr("formulakit.utils.yaml_io.MAX_YAML_SIZE", 10)
        with pytest.raises(MalformedDescriptor, match="文件过大"):
            FormulaRegistry(formula_dir).load()

    def test_unsupported_category_names_path(self, formula_dir: Path) -> None:
        _write(formula_dir / "odd.yml", "1.0", name="odd",
               install=[{"path": "odd", "category": "applications"}])
        with pytest.raises(UnsupportedConstraint, match="odd.yml"):
            FormulaRegistry(formula_dir).load()


def test_shipped_hear_formula() -> None:
    """仓库自带的 Formula/hear.yml 与原始 recipe 一致"""
    path = Path(__file__).resolve().parents[3] / "Formula" / "hear.yml"
    d = FormulaRegistry.load_file(path)
    assert d.ident == "hear@0.6"
    assert d.sha256 == SHA
    assert d.build_steps[1].args[0] == "xcodebuild"
    assert "CODE_SIGNING_ALLOWED=NO" in d.build_steps[1].args
    assert [(m.built_path, m.category, m.dest_name) for m in d.install_mappings] == [
        ("hear.1", "man1", "hear.1"),
        ("dst/hear", "bin", "hear"),
    ]
