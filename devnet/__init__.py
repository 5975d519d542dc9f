"""Service inventory and dependency resolution for multi-process test networks."""

__version__ = "0.1.0"
