"""Version information for casbin-sql-store."""

__version__ = "1.2.0"
__version_info__ = tuple(int(i) for i in __version__.split("."))


def get_version() -> str:
    """Get the current version string."""
    return __version__
