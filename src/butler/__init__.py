"""Butler: a personal assistant chat bot."""

__version__ = "0.1.0"
