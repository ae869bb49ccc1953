from __future__ import annotations

import importlib
import pkgutil
from pathlib import Path
from typing import Dict, List, Optional

import typer

from .config import load_config, load_metadata, metadata_path, resolve
from .core import Composite, Orchestrator, OperationSpec, TaskContext, build_registry
from .errors import ConfigurationError, TaskFailure
from .external import ExternalRunner, run_external
from .logging import get_logger, set_level
from .utils import _get


app = typer.Typer(add_completion=False, help="Run named build pipelines (dev, build, loop, package)")
log = get_logger("buildloop.cli")

TASKS_PACKAGE = "buildloop.tasks"


def discover_operations(package: str = TASKS_PACKAGE) -> Dict[str, OperationSpec]:
    """Import all modules in the tasks package and collect decorated operations."""
    pkg = importlib.import_module(package)
    specs: Dict[str, OperationSpec] = {}
    for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{package}."):
        mod = importlib.import_module(m.name)
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            spec = getattr(obj, "_operation_spec", None)
            if isinstance(spec, OperationSpec):
                if spec.kind in specs and specs[spec.kind].fn is not obj:
                    raise ConfigurationError(f"Operation kind declared twice: {spec.kind}")
                specs[spec.kind] = spec
    return specs


def build_orchestrator(
    root: str | Path = ".",
    config: str | Path | None = "configs/build.yaml",
    package: str | Path | None = None,
    runner: ExternalRunner = run_external,
) -> Orchestrator:
    """Load config and metadata once, validate the registry, bind the context."""
    root = Path(root).resolve()
    if config is not None and not Path(config).is_absolute():
        config = root / config
    params = load_config(config)
    level = _get(params, "logging", "level")
    if level:
        set_level(str(level))
    log_file = _get(params, "logging", "file")
    if log_file:
        get_logger("buildloop", log_file=root / log_file)

    metadata = load_metadata(root / package if package else metadata_path(params, root))
    registry = build_registry(resolve(params, metadata), discover_operations())
    ctx = TaskContext(root=root, variables=metadata.variables(), run_external=runner)
    return Orchestrator(registry, ctx, name=metadata.name)


def _load(root: str, config: str, package: Optional[str]) -> Orchestrator:
    try:
        return build_orchestrator(root=root, config=config, package=package)
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("list")
def list_tasks(
    root: str = typer.Option(".", help="Project directory"),
    config: str = typer.Option("configs/build.yaml", help="Path to YAML config"),
    package: Optional[str] = typer.Option(None, help="Project metadata JSON"),
):
    """List registered tasks and their steps."""
    orch = _load(root, config, package)
    for name in sorted(orch.registry):
        node = orch.registry[name]
        if isinstance(node, Composite):
            typer.echo(f"- {name}: {' → '.join(node.steps)}")
        else:
            typer.echo(f"- {name} ({node.kind})")


@app.command()
def check(
    root: str = typer.Option(".", help="Project directory"),
    config: str = typer.Option("configs/build.yaml", help="Path to YAML config"),
    package: Optional[str] = typer.Option(None, help="Project metadata JSON"),
):
    """Validate the configuration and task references."""
    orch = _load(root, config, package)
    typer.echo(f"OK: {len(orch.registry)} tasks")


@app.command()
def run(
    names: List[str] = typer.Argument(..., help="Task name(s) to run, in order"),
    root: str = typer.Option(".", help="Project directory"),
    config: str = typer.Option("configs/build.yaml", help="Path to YAML config"),
    package: Optional[str] = typer.Option(None, help="Project metadata JSON"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the steps without running them"),
):
    """Run one or more tasks; the first failure stops everything."""
    orch = _load(root, config, package)
    try:
        if dry_run:
            for name in names:
                for leaf in orch.plan(name):
                    typer.echo(leaf.name)
            return
        for name in names:
            orch.run(name)
    except (TaskFailure, ConfigurationError) as e:
        typer.echo(f"Aborted: {e}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        orch.context.stop.set()
        log.info("Interrupted")
        raise typer.Exit(code=130)
    finally:
        orch.close()
    log.info("Done, without errors.")


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
