"""Delete build directories and files."""

import shutil

from ..orchestrator import operation
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import as_list


@operation(kind="clean", required=("src",))
def clean(options, ctx):
    logger = get_logger("buildloop.clean")
    for rel in as_list(options.get("src")):
        p = ctx.path(rel)
        if p.is_dir() and not p.is_symlink():
            shutil.rmtree(p)
        elif p.exists() or p.is_symlink():
            p.unlink()
        else:
            continue
        logger.info("Removed %s", rel)
