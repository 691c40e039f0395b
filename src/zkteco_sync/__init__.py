"""ZKTeco time-attendance terminal client and sync pipeline."""

__version__ = "0.1.0"
