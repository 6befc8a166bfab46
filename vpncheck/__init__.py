"""Public package surface for vpncheck.

Importing `vpncheck` exposes the high-level API function (`VPNCHECK`), the
report types and the package version.
"""

from .core import VPNCHECK
from .models import DomainReport, InvalidDomainError, ResolutionError
from .version import __version__

__all__ = ["VPNCHECK", "DomainReport", "InvalidDomainError", "ResolutionError", "__version__"]
