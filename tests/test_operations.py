"""Leaf operations run against a real project tree."""

from __future__ import annotations

import os
import shlex
import sys
import threading
import time
import urllib.request
import zipfile
from pathlib import Path

import pytest

from buildloop.orchestrator.errors import LeafOperationFailure, OperationError
from buildloop.orchestrator.snapshot import take_snapshot

PYTHON = shlex.quote(sys.executable)


def _tree(root: Path) -> dict:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


def test_loop_copies_assets_and_compiles_sources(project: Path, make_orchestrator) -> None:
    make_orchestrator().run("loop")

    assert (project / "app" / "index.html").read_text() == "<html>demo</html>\n"
    bundle = (project / "app" / "demo.js").read_text()
    assert "// src/elm/Main.elm" in bundle
    assert "// src/elm/Util/Helpers.elm" in bundle


def test_loop_is_idempotent(project: Path, make_orchestrator) -> None:
    orch = make_orchestrator()
    orch.run("loop")
    first = _tree(project / "app")
    orch.run("loop")
    assert _tree(project / "app") == first


def test_build_installs_dependencies_online(project: Path, make_orchestrator) -> None:
    make_orchestrator().run("build")
    assert (project / "installs.log").read_text() == "online\n"


def test_package_produces_single_versioned_archive(project: Path, make_orchestrator) -> None:
    make_orchestrator().run("package")

    archives = list((project / "dist").iterdir())
    assert archives == [project / "dist" / "demo-1.2.3.zip"]
    minified = (project / "app" / "demo.min.js").read_text()
    assert "\n" not in minified
    with zipfile.ZipFile(archives[0]) as zf:
        names = sorted(zf.namelist())
        assert names == sorted(f"app/{name}" for name in _tree(project / "app"))
        assert zf.read("app/index.html") == b"<html>demo</html>\n"


def test_compile_failure_keeps_copied_files_and_skips_packaging(
    project: Path, make_orchestrator
) -> None:
    orch = make_orchestrator(
        {"compile": {"elm": {"command": f"{PYTHON} tools/fail.py"}}}
    )
    with pytest.raises(LeafOperationFailure) as exc:
        orch.run("package")

    assert exc.value.step == "compile:elm"
    assert "status 3" in str(exc.value)
    assert (project / "app" / "index.html").exists()
    assert not (project / "app" / "demo.min.js").exists()
    assert not (project / "dist").exists()


def test_compile_passes_each_source_as_its_own_argument(
    project: Path, make_orchestrator, fake_runner
) -> None:
    def fake_compile(command, args):
        (project / args[-1]).write_text("compiled")

    runner = fake_runner(on_call=fake_compile)
    make_orchestrator(runner=runner).run("compile")

    (call,) = runner.calls
    assert call[-2:] == ["--output", "app/demo.js"]
    assert "src/elm/Main.elm" in call
    assert "src/elm/Util/Helpers.elm" in call


def test_compile_without_matching_sources_fails(project: Path, make_orchestrator, fake_runner) -> None:
    runner = fake_runner()
    orch = make_orchestrator({"compile": {"elm": {"sources": ["src/purs/**/*.purs"]}}}, runner=runner)
    with pytest.raises(LeafOperationFailure) as exc:
        orch.run("compile:elm")
    assert isinstance(exc.value.cause, OperationError)
    assert runner.calls == []


def test_compile_that_writes_nothing_fails(project: Path, make_orchestrator, fake_runner) -> None:
    with pytest.raises(LeafOperationFailure, match="did not produce"):
        make_orchestrator(runner=fake_runner()).run("compile")


def test_exec_reports_exit_status(project: Path, make_orchestrator) -> None:
    orch = make_orchestrator(
        {"exec": {"install": {"command": f"{PYTHON} tools/fail.py"}}}
    )
    with pytest.raises(LeafOperationFailure, match="exited with status 3"):
        orch.run("build")
    assert not (project / "app").exists()


def test_exec_passes_environment(project: Path, make_orchestrator, fake_runner) -> None:
    runner = fake_runner()
    make_orchestrator(
        {"exec": {"install": {"env": {"ELM_HOME": "/tmp/elm"}}}}, runner=runner
    ).run("exec:install")
    assert runner.envs == [{"ELM_HOME": "/tmp/elm"}]
    assert runner.cwds == [project.resolve()]


def test_copy_preserves_relative_paths(project: Path, make_orchestrator) -> None:
    (project / "assets" / "img" / "icons").mkdir(parents=True)
    (project / "assets" / "img" / "logo.png").write_bytes(b"png")
    (project / "assets" / "img" / "icons" / "x.png").write_bytes(b"x")
    (project / "assets" / "notes.txt").write_text("skip")
    orch = make_orchestrator(
        {"copy": {"dist": {"files": [{"cwd": "assets", "src": ["**/*.png"], "dest": "app/static"}]}}}
    )
    orch.run("copy")

    assert (project / "app" / "static" / "img" / "logo.png").read_bytes() == b"png"
    assert (project / "app" / "static" / "img" / "icons" / "x.png").read_bytes() == b"x"
    assert not (project / "app" / "static" / "notes.txt").exists()


def test_clean_removes_directories_and_files(project: Path, make_orchestrator) -> None:
    orch = make_orchestrator()
    orch.run("loop")
    (project / "tmp").mkdir()
    (project / "tmp" / "scratch").write_text("x")
    orch.run("clean")

    assert not (project / "app").exists()
    assert not (project / "tmp").exists()
    assert (project / "src" / "index.html").exists()


def test_archive_prefix(project: Path, make_orchestrator) -> None:
    orch = make_orchestrator({"archive": {"dist": {"prefix": "release"}}})
    orch.run("loop")
    orch.run("archive")
    with zipfile.ZipFile(project / "dist" / "demo-1.2.3.zip") as zf:
        assert "release/app/index.html" in zf.namelist()


def test_minify_requires_compiled_bundle(project: Path, make_orchestrator) -> None:
    with pytest.raises(LeafOperationFailure, match="Nothing to minify"):
        make_orchestrator().run("minify")


def test_snapshot_sees_nested_files(project: Path) -> None:
    snap = take_snapshot(project.resolve(), ["src/**"])
    assert set(snap) == {"src/index.html", "src/elm/Main.elm", "src/elm/Util/Helpers.elm"}


def _wait_for(predicate, timeout: float = 15.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_dev_serves_installs_offline_and_rebuilds_on_change(
    project: Path, make_orchestrator
) -> None:
    orch = make_orchestrator(
        {
            "serve": {"server": {"hostname": "127.0.0.1", "port": 0}},
            "watch": {"dev": {"interval": 0.05}},
        }
    )
    errors = []

    def run_dev():
        try:
            orch.run("dev")
        except Exception as e:  # noqa: BLE001
            errors.append(e)

    bundle = project / "app" / "demo.js"
    thread = threading.Thread(target=run_dev)
    thread.start()
    try:
        assert _wait_for(lambda: bundle.exists())
        assert (project / "installs.log").read_text() == "offline\n"
        (server,) = orch.context.background
        with urllib.request.urlopen(f"{server.url}index.html", timeout=5) as resp:
            assert resp.read() == b"<html>demo</html>\n"

        # let the initial watch run finish and the poller take its baseline
        time.sleep(0.5)
        main = project / "src" / "elm" / "Main.elm"
        main.write_text("module Main exposing (main)\n\nmain = text \"changed\"\n")
        later = time.time() + 10
        os.utime(main, (later, later))
        assert _wait_for(lambda: "changed" in bundle.read_text())
    finally:
        orch.context.stop.set()
        thread.join(10)
        orch.close()
    assert not thread.is_alive()
    assert errors == []
