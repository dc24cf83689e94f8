"""Studio class booking and waitlist engine."""

__version__ = "0.1.0"
