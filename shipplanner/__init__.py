"""Ship layout planner: tile model, placement engine and undo history."""

__version__ = "0.1.0"
