"""Comics DB: read-only API over the Russian comic-scanlation catalog."""

__version__ = "0.1.0"
