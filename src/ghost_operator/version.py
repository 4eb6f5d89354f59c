"""
Version information for Ghost Operator.

Single source of truth for the package version.
"""

__version__ = "0.3.0"

VERSION_INFO = {
    "version": __version__,
    "name": "ghost-operator",
    "full_name": "Ghost Operator - Autonomous Incident Decision Engine",
}


def get_version() -> str:
    """Return the current version string."""
    return __version__


def get_version_info() -> dict:
    """Return detailed version information."""
    return VERSION_INFO.copy()
