"""
Marketplaces for Bazaar.

A marketplace is a repository publishing plugins through
.claude-plugin/marketplace.json. Marketplaces are added from a local
directory, a GitHub "owner/repo" shorthand or a git URL, copied under
the config directory and recorded in known_marketplaces.yaml.
"""

from bazaar.marketplace.known import KnownMarketplace, KnownMarketplaces
from bazaar.marketplace.manager import (
    AmbiguousPluginError,
    MarketplaceError,
    MarketplaceManager,
    MarketplaceNotFoundError,
    PluginNotFoundError,
    ResolvedPlugin,
    parse_ref,
)
from bazaar.marketplace.manifest import (
    GitHubSource,
    GitSource,
    Marketplace,
    MarketplaceManifest,
    MarketplaceMetadata,
    PluginEntry,
    get_manifest_path,
    load_marketplace,
    load_marketplace_manifest,
)
from bazaar.marketplace.sources import (
    MarketplaceSource,
    SourceFetchError,
    fetch_source,
    parse_source,
    refresh_source,
)

__all__ = [
    # Manifest
    "GitHubSource",
    "GitSource",
    "Marketplace",
    "MarketplaceManifest",
    "MarketplaceMetadata",
    "PluginEntry",
    "get_manifest_path",
    "load_marketplace",
    "load_marketplace_manifest",
    # Sources
    "MarketplaceSource",
    "SourceFetchError",
    "fetch_source",
    "parse_source",
    "refresh_source",
    # Store
    "KnownMarketplace",
    "KnownMarketplaces",
    # Manager
    "AmbiguousPluginError",
    "MarketplaceError",
    "MarketplaceManager",
    "MarketplaceNotFoundError",
    "PluginNotFoundError",
    "ResolvedPlugin",
    "parse_ref",
]
