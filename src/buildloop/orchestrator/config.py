from __future__ import annotations

"""Build configuration: built-in defaults, YAML overrides and project metadata."""

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .errors import ConfigurationError
from .logging import get_logger
from .utils import _get, render


log = get_logger("buildloop.config")


DEFAULT_CONFIG: Dict[str, Any] = {
    "project": {"metadata": "package.json"},
    "exec": {
        "install": {"command": "elm-install"},
        "install-offline": {"command": "elm-install --skip-update"},
        "closure": {"command": "./closure-minify"},
    },
    "compile": {
        "elm": {
            "sources": ["src/elm/**/*.elm"],
            "output": "app/${name}.js",
            "command": "elm-make {sources} --yes --output {output}",
        },
    },
    "copy": {
        "dist": {"files": [{"cwd": "src", "src": ["index.html"], "dest": "app"}]},
    },
    "minify": {
        "dist": {
            "src": "app/${name}.js",
            "dest": "app/${name}.min.js",
            # no --mangle: names stay readable in the packaged bundle
            "command": "uglifyjs {src} --compress --output {dest}",
        },
    },
    "archive": {
        "dist": {"archive": "dist/${name}-${version}.zip", "src": ["app/**"]},
    },
    "serve": {
        "server": {"hostname": "localhost", "port": 9070, "base": "app"},
    },
    "watch": {
        "dev": {
            "files": ["Gruntfile.js", "elm-package.json", "src/**"],
            "tasks": ["loop"],
            "at_begin": True,
        },
    },
    "clean": {
        "temp": {"src": ["tmp", "app", "dist", "node_modules", "elm-stuff"]},
    },
    "tasks": {
        "dev": ["serve:server", "exec:install-offline", "loop", "watch:dev"],
        "build": ["exec:install", "loop"],
        "loop": ["copy", "compile"],
        "package": ["build", "minify", "archive"],
    },
    "logging": {"level": None, "file": None},
}


@dataclass(frozen=True)
class ProjectMetadata:
    name: str
    version: str

    def variables(self) -> Dict[str, str]:
        return {"name": self.name, "version": self.version}


def _deep_merge(base: dict, override: Mapping) -> dict:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict) and k != "tasks":
            out[k] = _deep_merge(out[k], v)
        elif k == "tasks" and isinstance(v, Mapping):
            # task lists replace defaults per name, never merge element-wise
            out[k] = {**out.get(k, {}), **copy.deepcopy(dict(v))}
        else:
            out[k] = copy.deepcopy(v)
    return out


def load_config(path: str | Path | None, required: bool = False) -> dict:
    """Defaults overlaid with the YAML file at `path`, if it exists."""
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)
    p = Path(path)
    if not p.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {p}")
        log.debug("No config at %s, using defaults", p)
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{p}: top level must be a mapping")
    return _deep_merge(DEFAULT_CONFIG, data)


def load_metadata(path: str | Path) -> ProjectMetadata:
    """Read `name` and `version` from a package.json-style record."""
    p = Path(path)
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Project metadata not found: {p}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{p}: expected a JSON object")
    missing = [k for k in ("name", "version") if not data.get(k)]
    if missing:
        raise ConfigurationError(f"{p}: missing field(s) {', '.join(missing)}")
    return ProjectMetadata(name=str(data["name"]), version=str(data["version"]))


def resolve(config: dict, metadata: ProjectMetadata) -> dict:
    """Render placeholders in every operation section."""
    out = dict(config)
    for key, value in config.items():
        if key in ("tasks", "logging", "project"):
            continue
        out[key] = render(value, metadata.variables())
    return out


def metadata_path(config: dict, root: Path) -> Path:
    return root / _get(config, "project", "metadata", default="package.json")
