"""context-extender: answer questions over documents larger than Claude's context window."""

__version__ = "0.1.0"
