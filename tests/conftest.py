"""Shared test fixtures."""

from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path

import pytest
import yaml

from buildloop.orchestrator.cli import build_orchestrator

PYTHON = shlex.quote(sys.executable)

_COMPILER = """\
import sys
args = sys.argv[1:]
out = args[args.index("--output") + 1]
sources = [a for a in args if a != "--output" and a != out]
with open(out, "w") as f:
    for s in sources:
        f.write("// " + s + "\\n" + open(s).read())
"""

_MINIFIER = """\
import sys
src, dest = sys.argv[1], sys.argv[2]
text = open(src).read()
open(dest, "w").write("".join(line.strip() for line in text.splitlines()))
"""

_MARKER = """\
import sys
open(sys.argv[1], "a").write(" ".join(sys.argv[2:]) + "\\n")
"""


class FakeRunner:
    """Stands in for `run_external`, recording every invocation."""

    def __init__(self, status: int = 0, on_call=None):
        self.status = status
        self.on_call = on_call
        self.calls = []
        self.envs = []
        self.cwds = []

    def __call__(self, command, args=(), env=None, cwd=None):
        self.calls.append([command, *args])
        self.envs.append(env)
        self.cwds.append(cwd)
        if self.on_call is not None:
            self.on_call(command, list(args))
        return self.status


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """A small project: metadata, static asset, two sources and tool scripts."""
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "demo", "version": "1.2.3"}), encoding="utf-8"
    )
    (tmp_path / "src" / "elm" / "Util").mkdir(parents=True)
    (tmp_path / "src" / "index.html").write_text("<html>demo</html>\n", encoding="utf-8")
    (tmp_path / "src" / "elm" / "Main.elm").write_text(
        "module Main exposing (main)\n\nmain = text \"hi\"\n", encoding="utf-8"
    )
    (tmp_path / "src" / "elm" / "Util" / "Helpers.elm").write_text(
        "module Util.Helpers exposing (..)\n", encoding="utf-8"
    )
    tools = tmp_path / "tools"
    tools.mkdir()
    (tools / "compile.py").write_text(_COMPILER, encoding="utf-8")
    (tools / "minify.py").write_text(_MINIFIER, encoding="utf-8")
    (tools / "marker.py").write_text(_MARKER, encoding="utf-8")
    (tools / "fail.py").write_text("import sys\nsys.exit(3)\n", encoding="utf-8")

    config = {
        "exec": {
            "install": {"command": f"{PYTHON} tools/marker.py installs.log online"},
            "install-offline": {
                "command": f"{PYTHON} tools/marker.py installs.log offline"
            },
            "closure": None,
        },
        "compile": {
            "elm": {"command": f"{PYTHON} tools/compile.py {{sources}} --output {{output}}"}
        },
        "minify": {
            "dist": {"command": f"{PYTHON} tools/minify.py {{src}} {{dest}}"}
        },
    }
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "build.yaml").write_text(yaml.safe_dump(config), encoding="utf-8")
    return tmp_path


@pytest.fixture()
def make_orchestrator(project: Path):
    def _make(overrides: dict | None = None, runner=None):
        cfg_path = project / "configs" / "build.yaml"
        if overrides:
            cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
            for section, targets in overrides.items():
                if isinstance(targets, dict) and isinstance(cfg.get(section), dict):
                    for name, opts in targets.items():
                        if isinstance(opts, dict) and isinstance(cfg[section].get(name), dict):
                            cfg[section][name].update(opts)
                        else:
                            cfg[section][name] = opts
                else:
                    cfg[section] = targets
            cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        kwargs = {"runner": runner} if runner is not None else {}
        return build_orchestrator(root=project, **kwargs)

    return _make


@pytest.fixture()
def fake_runner():
    return FakeRunner
