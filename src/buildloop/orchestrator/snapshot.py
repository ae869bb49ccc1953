from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .utils import expand_globs


Stat = Tuple[Optional[int], Optional[int]]


def safe_stat(path: Path) -> Stat:
    try:
        st = path.stat()
        return (st.st_size, st.st_mtime_ns)
    except OSError:
        return (None, None)


def take_snapshot(base: Path, patterns: Iterable[str]) -> Dict[str, Stat]:
    """Size and mtime of every file currently matching `patterns`."""
    return {
        str(p.relative_to(base)): safe_stat(p) for p in expand_globs(base, patterns)
    }


def changed_paths(old: Dict[str, Stat], new: Dict[str, Stat]) -> List[str]:
    """Paths added, removed or modified between two snapshots."""
    changed = [p for p, st in new.items() if old.get(p) != st]
    changed.extend(p for p in old if p not in new)
    return sorted(changed)
