"""formula 描述解析

把 YAML 读出的字典解析为不可变的 FormulaDescriptor，不产生任何副作用。

formula 文件格式:
    name: hear
    desc: ...
    homepage: https://github.com/sveinbjornt/hear
    url: https://github.com/sveinbjornt/hear/archive/refs/tags/0.6.tar.gz
    sha256: a6487df0...
    license: BSD-3-Clause
    depends_on:
      xcode: ["10.0", build]      # [最低版本, 阶段]
      macos: ventura              # 仅最低版本，阶段默认 runtime
    build:
      - mkdir: "{buildpath}/dst"
      - run: [xcodebuild, "DSTROOT={buildpath}/dst", clean, install]
        env: {MACOSX_DEPLOYMENT_TARGET: "13.0"}
    install:
      - {path: hear.1, category: man1}
      - {path: dst/hear, category: bin, as: hear}
    test: "{bin}/hear --version"
"""

from __future__ import annotations

import posixpath
import re
import shlex
from typing import Any

from formulakit.core.exceptions import MalformedDescriptor, UnsupportedConstraint
from formulakit.core.models import (
    DESTINATION_DIRS,
    BuildStep,
    Dependency,
    FormulaDescriptor,
    InstallMapping,
    Phase,
    StepKind,
)
from formulakit.core.versions import macos_version, version_from_url

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
_PHASES = {p.value: p for p in Phase}


def parse_descriptor(data: dict[str, Any], default_name: str = "") -> FormulaDescriptor:
    """解析 formula 字典

    Raises:
        MalformedDescriptor: 缺少 name / url / sha256 / 构建步骤，或字段格式错误
        UnsupportedConstraint: 依赖阶段或安装类别不在可识别范围内
    """
    if not isinstance(data, dict):
        raise MalformedDescriptor(f"formula 必须是字典，实际为 {type(data).__name__}")

    name = str(data.get("name") or default_name).strip()
    if not name:
        raise MalformedDescriptor("formula 缺少 name")

    url = str(data.get("url") or "").strip()
    if not url:
        raise MalformedDescriptor(f"formula '{name}' 缺少 url")

    sha256 = str(data.get("sha256") or "").strip().lower()
    if not sha256:
        raise MalformedDescriptor(f"formula '{name}' 缺少 sha256")
    if not _SHA256_RE.match(sha256):
        raise MalformedDescriptor(f"formula '{name}' 的 sha256 格式无效: {sha256}")

    version = str(data.get("version") or "").strip() or version_from_url(url)
    if not version:
        raise MalformedDescriptor(f"formula '{name}' 未声明 version，且无法从 url 推断")

    steps = tuple(
        _parse_step(name, i, raw) for i, raw in enumerate(data.get("build") or [])
    )
    if not steps:
        raise MalformedDescriptor(f"formula '{name}' 至少需要一个构建步骤")

    test_expect = str(data.get("test_expect") or "")
    if test_expect:
        try:
            re.compile(test_expect)
        except re.error as e:
            raise MalformedDescriptor(
                f"formula '{name}' 的 test_expect 不是合法正则: {e}",
            ) from e

    return FormulaDescriptor(
        name=name,
        version=version,
        source_url=url,
        sha256=sha256,
        build_steps=steps,
        description=str(data.get("desc") or data.get("description") or ""),
        homepage=str(data.get("homepage") or ""),
        license=str(data.get("license") or ""),
        dependencies=_parse_dependencies(name, data.get("depends_on") or {}),
        install_mappings=tuple(
            _parse_mapping(name, raw) for raw in data.get("install") or []
        ),
        test_command=_split_command(data.get("test") or ""),
        test_expect=test_expect,
    )


def _split_command(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(shlex.split(value))
    return tuple(str(a) for a in value)


def _parse_dependencies(name: str, raw: Any) -> tuple[Dependency, ...]:
    """解析 depends_on，支持三种写法:

      dep: "10.0"                                  仅最低版本
      dep: ["10.0", build]                         [最低版本, 阶段]
      dep: {min_version: "10.0", phase: build}     完整写法
    """
    if not isinstance(raw, dict):
        raise MalformedDescriptor(f"formula '{name}' 的 depends_on 必须是字典")

    deps: list[Dependency] = []
    for dep_name, spec in raw.items():
        if isinstance(spec, dict):
            min_version = spec.get("min_version", "")
            phase = spec.get("phase", Phase.RUNTIME.value)
        elif isinstance(spec, (list, tuple)):
            if not spec or len(spec) > 2:
                raise MalformedDescriptor(
                    f"formula '{name}' 的依赖 '{dep_name}' 写法无效: {spec}",
                )
            min_version = spec[0]
            phase = spec[1] if len(spec) == 2 else Phase.RUNTIME.value
        else:
            min_version = "" if spec is None else spec
            phase = Phase.RUNTIME.value

        phase_key = str(phase).lstrip(":").lower()
        if phase_key not in _PHASES:
            raise UnsupportedConstraint(
                f"formula '{name}' 的依赖 '{dep_name}' 阶段无效: {phase}，"
                f"可用: {sorted(_PHASES)}"
            )
        min_version = str(min_version).lstrip(":")
        if dep_name == "macos":
            min_version = macos_version(min_version)
        deps.append(Dependency(
            name=str(dep_name), min_version=min_version, phase=_PHASES[phase_key],
        ))
    return tuple(deps)


def _parse_step(name: str, index: int, raw: Any) -> BuildStep:
    if not isinstance(raw, dict):
        raise MalformedDescriptor(f"formula '{name}' 第 {index} 个构建步骤必须是字典")

    env = raw.get("env") or {}
    if not isinstance(env, dict):
        raise MalformedDescriptor(f"formula '{name}' 第 {index} 个构建步骤的 env 必须是字典")
    env_pairs = tuple((str(k), "" if v is None else str(v)) for k, v in env.items())

    if "run" in raw:
        args = _split_command(raw["run"] or "")
        if not args:
            raise MalformedDescriptor(f"formula '{name}' 第 {index} 个构建步骤命令为空")
        return BuildStep(kind=StepKind.RUN, args=args, env=env_pairs)
    if "mkdir" in raw:
        path = str(raw["mkdir"] or "")
        if not path:
            raise MalformedDescriptor(f"formula '{name}' 第 {index} 个 mkdir 步骤路径为空")
        return BuildStep(kind=StepKind.MKDIR, args=(path,))
    raise MalformedDescriptor(
        f"formula '{name}' 第 {index} 个构建步骤类型未知: {sorted(raw)}",
    )


def _parse_mapping(name: str, raw: Any) -> InstallMapping:
    if not isinstance(raw, dict) or not raw.get("path"):
        raise MalformedDescriptor(f"formula '{name}' 的安装映射缺少 path: {raw}")
    category = str(raw.get("category") or "")
    if category not in DESTINATION_DIRS:
        raise UnsupportedConstraint(
            f"formula '{name}' 的安装类别无效: '{category}'，"
            f"可用: {sorted(DESTINATION_DIRS)}"
        )
    built_path = str(raw["path"])
    normalized = posixpath.normpath(built_path)
    if (
        posixpath.isabs(built_path)
        or normalized in (".", "..")
        or normalized.startswith("../")
    ):
        raise MalformedDescriptor(
            f"formula '{name}' 的安装源必须是构建目录内的相对路径: '{built_path}'",
        )
    target_name = str(raw.get("as") or "")
    if target_name in (".", "..") or "/" in target_name or "\\" in target_name:
        raise MalformedDescriptor(
            f"formula '{name}' 的安装名 as 只能是文件名: '{target_name}'",
        )
    return InstallMapping(
        built_path=built_path,
        category=category,
        target_name=target_name,
    )
