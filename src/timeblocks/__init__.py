"""timeblocks: client-side mirror of a remote collection of scheduled time-blocks."""

__version__ = "0.1.0"
