"""Copy static assets into the build output directory."""

import shutil

from ..orchestrator import operation
from ..orchestrator.errors import ConfigurationError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import as_list, expand_globs, require


@operation(kind="copy", required=("files",))
def copy(options, ctx):
    """Copy files matching each group's `src` globs under `cwd` into `dest`.

    Paths relative to `cwd` are preserved, so `src/img/a.png` with
    `cwd: src` lands at `<dest>/img/a.png`. Existing files are overwritten.
    """
    logger = get_logger("buildloop.copy")
    groups = require(options, "files", "copy")
    if not isinstance(groups, list):
        raise ConfigurationError("copy: 'files' must be a list")
    copied = 0
    for group in groups:
        cwd = ctx.path(group.get("cwd", "."))
        dest = ctx.path(require(group, "dest", "copy"))
        for src in expand_globs(cwd, as_list(group.get("src"))):
            target = dest / src.relative_to(cwd)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, target)
            copied += 1
    logger.info("Copied %d file(s)", copied)
