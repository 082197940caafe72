"""Chess rules engine with an external UCI oracle adapter."""

__version__ = "0.1.0"
