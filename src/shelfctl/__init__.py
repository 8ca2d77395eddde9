"""shelfctl — library circulation control."""

__version__ = "0.1.0"
