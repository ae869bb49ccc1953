from __future__ import annotations

"""Small helpers for reading options and building paths from config."""

import shlex
from pathlib import Path
from string import Template
from typing import Any, Dict, Iterable, List, Mapping

from .errors import ConfigurationError


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def require(options: Mapping, key: str, where: str) -> Any:
    value = options.get(key)
    if value is None:
        raise ConfigurationError(f"{where}: missing required option '{key}'")
    return value


def as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, Path)):
        return [str(value)]
    return [str(v) for v in value]


def render(value: Any, variables: Mapping[str, str]) -> Any:
    """Substitute `${name}`-style placeholders through nested lists and dicts."""
    if isinstance(value, str):
        try:
            return Template(value).substitute(variables)
        except KeyError as e:
            raise ConfigurationError(
                f"Unknown placeholder {e.args[0]!r} in {value!r}"
            ) from None
        except ValueError as e:
            raise ConfigurationError(f"Bad placeholder in {value!r}: {e}") from None
    if isinstance(value, dict):
        return {k: render(v, variables) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [render(v, variables) for v in value]
    return value


def expand_argv(template: str, **values) -> List[str]:
    """Split a command template and fill `{key}` tokens.

    A token that is exactly `{key}` with a list value expands to one argument
    per item; other tokens are formatted in place.
    """
    argv: List[str] = []
    for token in shlex.split(template):
        key = token[1:-1] if token.startswith("{") and token.endswith("}") else None
        if key in values and isinstance(values[key], (list, tuple)):
            argv.extend(str(v) for v in values[key])
            continue
        try:
            argv.append(token.format(**{k: _scalar(v) for k, v in values.items()}))
        except (KeyError, IndexError) as e:
            raise ConfigurationError(
                f"Unknown field {e} in command {template!r}"
            ) from None
    return argv


def _scalar(v) -> str:
    if isinstance(v, (list, tuple)):
        return " ".join(str(x) for x in v)
    return str(v)


def expand_globs(base: Path, patterns: Iterable[str]) -> List[Path]:
    """Match files under `base`, keeping first-seen order and dropping duplicates.

    `**` matches any depth; a trailing `**` matches every file below it.
    Patterns without wildcards are taken literally when the file exists.
    """
    seen = set()
    paths: List[Path] = []
    for pat in patterns:
        if any(ch in pat for ch in "*?["):
            if pat.endswith("**"):
                pat = pat + "/*"
            matches = sorted(p for p in base.glob(pat) if p.is_file())
        else:
            p = base / pat
            matches = [p] if p.is_file() else []
        for p in matches:
            if p not in seen:
                seen.add(p)
                paths.append(p)
    return paths
