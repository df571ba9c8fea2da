"""nrega-pulse retrieval services consumed by the HTTP controllers."""

__version__ = "0.1.0"
