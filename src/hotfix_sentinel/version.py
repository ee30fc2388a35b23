"""
Version information for hotfix-sentinel.

Single source of truth for the package version.
"""

__version__ = "1.2.0"

VERSION_INFO = {
    "version": __version__,
    "name": "hotfix-sentinel",
    "full_name": "Hotfix Sentinel - automated incident remediation orchestrator",
}


def get_version() -> str:
    """Return the current version string."""
    return __version__


def get_version_info() -> dict:
    """Return detailed version information."""
    return VERSION_INFO.copy()
