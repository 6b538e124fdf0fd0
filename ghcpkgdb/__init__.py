# ghcpkgdb/__init__.py
"""Query and update GHC package databases through ghc-pkg."""

from ghcpkgdb.modules.envoverride import EnvOverride, ExecutableNotFound, env_helper
from ghcpkgdb.modules.ghcpkg import (
    FindIdentifierFailure,
    GhcPkgException,
    GlobalDbResolutionFailure,
    InvocationFailure,
    ListingParseFailure,
    describe_ghc_pkg_id,
    find_ghc_pkg_id,
    get_ghc_pkg_ids,
    get_global_db,
    get_package_version_map,
    unregister_package,
)

__version__ = "0.1.0"

__all__ = [
    "EnvOverride",
    "ExecutableNotFound",
    "env_helper",
    "FindIdentifierFailure",
    "GhcPkgException",
    "GlobalDbResolutionFailure",
    "InvocationFailure",
    "ListingParseFailure",
    "describe_ghc_pkg_id",
    "find_ghc_pkg_id",
    "get_ghc_pkg_ids",
    "get_global_db",
    "get_package_version_map",
    "unregister_package",
]
