"""Monica contacts client: authenticated API access and local contact sync."""

__version__ = "0.1.0"
