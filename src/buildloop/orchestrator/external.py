from __future__ import annotations

"""The single seam through which build steps reach external programs."""

import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from .logging import get_logger


log = get_logger("buildloop.external")


class ExternalRunner(Protocol):
    def __call__(
        self,
        command: str,
        args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> int: ...


def run_external(
    command: str,
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> int:
    """Run `command` with `args`, inheriting stdio, and return its exit status.

    `env` entries are layered over the current environment. A command that
    cannot be started reports status 127, like a shell would.
    """
    argv = [command, *args]
    full_env = dict(os.environ)
    if env:
        full_env.update({k: str(v) for k, v in env.items()})
    log.info("$ %s", " ".join(argv))
    try:
        result = subprocess.run(argv, cwd=cwd, env=full_env, check=False)
    except FileNotFoundError:
        log.error("Command not found: %s", command)
        return 127
    return result.returncode
