"""VideoHub - referential-integrity core for a social video-sharing backend."""

__version__ = "0.1.0"
