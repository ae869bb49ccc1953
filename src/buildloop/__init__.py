"""buildloop: named build pipelines (dev, build, loop, package) for a compiled web app."""

__version__ = "0.1.0"
