"""Leaf operations live here.

One module per operation kind; decorate the entry point with
`@orchestrator.operation(kind=...)` and it is picked up by the CLI.
Each function receives `(options, ctx)` and raises on failure.
"""
