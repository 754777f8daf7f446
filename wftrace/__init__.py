"""Build workflow execution state from history events, follow it live, and print it."""

__version__ = "0.1.0"