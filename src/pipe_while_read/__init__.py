"""Run a command for every line of standard input."""

__version__ = "0.3.0"
