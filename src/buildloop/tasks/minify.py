"""Minify the compiled bundle into `<name>.min.js`."""

from ..orchestrator import operation
from ..orchestrator.errors import OperationError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import expand_argv, require


@operation(kind="minify", required=("src", "dest", "command"))
def minify(options, ctx):
    logger = get_logger("buildloop.minify")
    src = ctx.path(require(options, "src", "minify"))
    dest = ctx.path(require(options, "dest", "minify"))
    if not src.is_file():
        raise OperationError(f"Nothing to minify: {src} does not exist")
    dest.parent.mkdir(parents=True, exist_ok=True)

    argv = expand_argv(
        require(options, "command", "minify"),
        src=ctx.rel(src),
        dest=ctx.rel(dest),
    )
    status = ctx.run_external(argv[0], argv[1:], options.get("env"), ctx.root)
    if status != 0:
        raise OperationError(f"Minifier {argv[0]} exited with status {status}")
    if not dest.exists():
        raise OperationError(f"Minifier did not produce {dest}")
    logger.info(
        "%s: %d → %d bytes", dest.name, src.stat().st_size, dest.stat().st_size
    )
