"""Re-run tasks whenever watched files change."""

from ..orchestrator import operation
from ..orchestrator.errors import ConfigurationError
from ..orchestrator.utils import as_list, require
from ..orchestrator.watcher import Watcher


@operation(kind="watch", references="tasks", required=("tasks",))
def watch(options, ctx):
    tasks = as_list(require(options, "tasks", "watch"))
    if ctx.orchestrator is None:
        raise ConfigurationError("watch: no orchestrator bound to this run")

    def trigger():
        for name in tasks:
            ctx.orchestrator.run(name)

    Watcher(
        trigger,
        ctx.root,
        as_list(options.get("files")),
        interval=float(options.get("interval", 0.5)),
        at_begin=bool(options.get("at_begin", False)),
        stop=ctx.stop,
        name=f"watch.{','.join(tasks)}",
    ).run()
