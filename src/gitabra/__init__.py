"""Drive ``git commit`` from an interactive editing session."""

__version__ = "0.1.0"
