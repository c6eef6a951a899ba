"""Public package surface for hostcheck.

Importing `hostcheck` exposes the high-level API function (`check_hostname`)
and package version, keeping internals hidden by default.
"""

from .core import CheckResult, check_hostname
from .version import __version__

__all__ = ["CheckResult", "check_hostname", "__version__"]
