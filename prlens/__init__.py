"""prlens: code-intelligence tools for automated pull-request review."""

__version__ = "0.1.0"
