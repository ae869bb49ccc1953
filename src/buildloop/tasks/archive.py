"""Zip the build output into a versioned distribution archive."""

import zipfile

from ..orchestrator import operation
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import as_list, expand_globs, require


@operation(kind="archive", required=("archive", "src"))
def archive(options, ctx):
    """Write every file matching `src` into the zip at `archive`.

    Entry names are the paths relative to the project root (`app/index.html`),
    optionally under a `prefix` directory. An existing archive is replaced.
    """
    logger = get_logger("buildloop.archive")
    out = ctx.path(require(options, "archive", "archive"))
    files = [
        p
        for p in expand_globs(ctx.root, as_list(require(options, "src", "archive")))
        if p != out
    ]
    prefix = str(options.get("prefix", "")).strip("/")
    out.parent.mkdir(parents=True, exist_ok=True)
    tmp = out.with_name(out.name + ".part")
    with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for p in files:
            arcname = ctx.rel(p)
            if prefix:
                arcname = f"{prefix}/{arcname}"
            zf.write(p, arcname)
    tmp.replace(out)
    logger.info("Created %s (%d file(s))", ctx.rel(out), len(files))
