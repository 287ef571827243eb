"""Security policy, prerequisite checks, terminal markers and runtime status for isolated environments."""

__version__ = "0.1.0"