"""feedrelay: poll sources on a schedule and relay new entries to sinks."""

__version__ = "0.1.0"

__all__ = ["__version__"]
