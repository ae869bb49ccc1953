"""Compile sources into a single bundle with the configured compiler.

The compiler itself is external; this step only gathers the sources,
makes sure the output directory exists and checks the exit status.
"""

from ..orchestrator import operation
from ..orchestrator.errors import OperationError
from ..orchestrator.logging import get_logger
from ..orchestrator.utils import as_list, expand_argv, expand_globs, require


@operation(kind="compile", required=("sources", "output", "command"))
def compile_sources(options, ctx):
    logger = get_logger("buildloop.compile")
    patterns = as_list(require(options, "sources", "compile"))
    output = ctx.path(require(options, "output", "compile"))
    sources = expand_globs(ctx.root, patterns)
    if not sources:
        raise OperationError(f"No sources match {', '.join(patterns)}")
    logger.info("Compiling %d source file(s) into %s", len(sources), output)
    output.parent.mkdir(parents=True, exist_ok=True)

    argv = expand_argv(
        require(options, "command", "compile"),
        sources=[ctx.rel(s) for s in sources],
        output=ctx.rel(output),
    )
    status = ctx.run_external(argv[0], argv[1:], options.get("env"), ctx.root)
    if status != 0:
        raise OperationError(f"Compiler {argv[0]} exited with status {status}")
    if not output.exists():
        raise OperationError(f"Compiler did not produce {output}")
