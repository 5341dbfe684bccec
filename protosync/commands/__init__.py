"""CLI command groups for protosync."""

__all__ = [
    "cache",
]
