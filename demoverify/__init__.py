"""demoverify: verification & analytics engine for uploaded demographic files."""

__version__ = "0.1.0"
