"""saul - workspace-based HTTP request runner."""

__version__ = "0.4.0"
