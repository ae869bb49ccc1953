from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import ConfigurationError, LeafOperationFailure, TaskFailure, UnknownTask
from .external import ExternalRunner, run_external
from .logging import get_logger


# Top-level config keys that are not operation kinds
RESERVED_SECTIONS = ("tasks", "logging", "project")


@dataclass
class OperationSpec:
    kind: str
    fn: Callable[..., None]
    # Option key holding task names the operation re-runs (watch)
    references: Optional[str] = None
    # Option keys every target of this kind must set
    required: Tuple[str, ...] = ()


def operation(
    kind: str, references: Optional[str] = None, required: Iterable[str] = ()
):
    """Decorator to declare a leaf operation kind on a function.

    The wrapped function receives the rendered target options and the
    `TaskContext` of the current run: `fn(options, ctx)`.
    """

    def deco(fn: Callable[..., None]):
        spec = OperationSpec(
            kind=kind, fn=fn, references=references, required=tuple(required)
        )
        setattr(fn, "_operation_spec", spec)
        return fn

    return deco


@dataclass(frozen=True)
class Composite:
    name: str
    steps: Tuple[str, ...]


@dataclass(frozen=True)
class Leaf:
    name: str
    kind: str
    target: str
    options: Mapping[str, Any]


Node = Union[Composite, Leaf]


def topo_sort(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    nodes = list(nodes)
    incoming = {n: set() for n in nodes}
    outgoing = {n: set() for n in nodes}
    for u, v in edges:
        if u not in incoming or v not in incoming:
            raise ConfigurationError(f"Task {u!r} references unknown task {v!r}")
        outgoing[u].add(v)
        incoming[v].add(u)
    ordered: list[str] = []
    roots = [n for n in nodes if not incoming[n]]
    while roots:
        n = roots.pop()
        ordered.append(n)
        for m in list(outgoing[n]):
            incoming[m].discard(n)
            outgoing[n].discard(m)
            if not incoming[m]:
                roots.append(m)
    cyclic = sorted(n for n in nodes if incoming[n])
    if cyclic:
        raise ConfigurationError(f"Cycle detected between tasks: {', '.join(cyclic)}")
    return ordered


class Registry(Mapping[str, Node]):
    """Immutable, validated mapping of task name to node."""

    def __init__(
        self, nodes: Mapping[str, Node], operations: Mapping[str, OperationSpec]
    ):
        self._nodes = MappingProxyType(dict(nodes))
        self.operations = MappingProxyType(dict(operations))
        self._validate()

    def __getitem__(self, name: str) -> Node:
        return self._nodes[name]

    def __iter__(self):
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def references(self, name: str) -> List[str]:
        node = self._nodes[name]
        if isinstance(node, Composite):
            return list(node.steps)
        spec = self.operations[node.kind]
        if spec.references:
            refs = node.options.get(spec.references) or []
            return [refs] if isinstance(refs, str) else list(refs)
        return []

    def _validate(self) -> None:
        edges = []
        for name, node in self._nodes.items():
            if isinstance(node, Leaf):
                if node.kind not in self.operations:
                    raise ConfigurationError(f"Unknown operation kind: {node.kind}")
                for key in self.operations[node.kind].required:
                    if node.options.get(key) is None:
                        raise ConfigurationError(
                            f"{name}: missing required option '{key}'"
                        )
            edges.extend((name, ref) for ref in self.references(name))
        topo_sort(self._nodes.keys(), edges)


def build_registry(
    config: Mapping[str, Any], operations: Mapping[str, OperationSpec]
) -> Registry:
    """Build leaves from per-kind config sections and composites from `tasks`.

    Each target `t` of kind `k` becomes the leaf `k:t`; the bare name `k` runs
    all of that kind's targets in declaration order.
    """
    unknown = sorted(
        k for k in config if k not in operations and k not in RESERVED_SECTIONS
    )
    if unknown:
        raise ConfigurationError(f"Unknown operation kind: {', '.join(unknown)}")
    nodes: Dict[str, Node] = {}
    for kind in operations:
        targets = config.get(kind) or {}
        if not isinstance(targets, dict):
            raise ConfigurationError(f"Section '{kind}' must map target names to options")
        names = []
        for target, options in targets.items():
            if options is None:
                # null disables a default target
                continue
            if not isinstance(options, dict):
                raise ConfigurationError(f"{kind}:{target}: options must be a mapping")
            leaf_name = f"{kind}:{target}"
            nodes[leaf_name] = Leaf(leaf_name, kind, str(target), MappingProxyType(options))
            names.append(leaf_name)
        if names:
            nodes[kind] = Composite(kind, tuple(names))
    for name, steps in (config.get("tasks") or {}).items():
        if steps is None:
            continue
        if isinstance(steps, str):
            steps = [steps]
        if name in nodes:
            raise ConfigurationError(f"Task '{name}' collides with operation '{name}'")
        if not isinstance(steps, list) or not steps:
            raise ConfigurationError(f"Task '{name}' must be a non-empty list of task names")
        nodes[name] = Composite(name, tuple(str(s) for s in steps))
    return Registry(nodes, operations)


@dataclass
class TaskContext:
    """Everything a leaf needs from the run that invokes it."""

    root: Path
    variables: Mapping[str, str]
    run_external: ExternalRunner = run_external
    stop: threading.Event = field(default_factory=threading.Event)
    background: List[Any] = field(default_factory=list)
    orchestrator: Optional["Orchestrator"] = None

    def path(self, p: Union[str, Path]) -> Path:
        return self.root / p

    def rel(self, p: Path) -> str:
        """`p` relative to the project root when it lies inside it."""
        try:
            return p.relative_to(self.root).as_posix()
        except ValueError:
            return str(p)


class Orchestrator:
    def __init__(self, registry: Registry, context: TaskContext, name: str = "build"):
        self.name = name
        self.registry = registry
        self.context = context
        context.orchestrator = self
        self.logger = get_logger(f"buildloop.{self.name}")

    def _lookup(self, name: str) -> Node:
        try:
            return self.registry[name]
        except KeyError:
            raise UnknownTask(name) from None

    def plan(self, name: str) -> List[Leaf]:
        """Fully expanded leaf sequence for `name`."""
        node = self._lookup(name)
        if isinstance(node, Leaf):
            return [node]
        leaves: List[Leaf] = []
        for step in node.steps:
            leaves.extend(self.plan(step))
        return leaves

    def run(self, name: str) -> None:
        node = self._lookup(name)
        if isinstance(node, Composite):
            self.logger.info(
                "Selected steps: %s", " → ".join(leaf.name for leaf in self.plan(name))
            )
        self._run_node(node)

    def _run_node(self, node: Node) -> None:
        if isinstance(node, Composite):
            for step in node.steps:
                self._run_node(self._lookup(step))
            return
        step_logger = get_logger(f"buildloop.{self.name}.{node.name}")
        spec = self.registry.operations[node.kind]
        step_logger.info("Run: %s", node.name)
        try:
            spec.fn(node.options, self.context)
        except (TaskFailure, ConfigurationError):
            raise
        except Exception as e:  # noqa: BLE001
            step_logger.exception("Step failed (%s)", node.name)
            raise LeafOperationFailure(node.name, e) from e

    def close(self) -> None:
        """Stop background services started by earlier steps."""
        while self.context.background:
            service = self.context.background.pop()
            service.shutdown()
