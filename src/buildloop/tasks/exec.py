"""Run an arbitrary external command (dependency install, helper scripts)."""

from ..orchestrator import operation
from ..orchestrator.errors import OperationError
from ..orchestrator.utils import expand_argv, require


@operation(kind="exec", required=("command",))
def exec_command(options, ctx):
    argv = expand_argv(require(options, "command", "exec"))
    if not argv:
        raise OperationError("exec: empty command")
    cwd = ctx.path(options.get("cwd", "."))
    status = ctx.run_external(argv[0], argv[1:], options.get("env"), cwd)
    if status != 0:
        raise OperationError(f"{argv[0]} exited with status {status}")
