"""HTTP adapters for indexers and download clients."""

from fetcharr.infrastructure.integrations.newznab_indexer import NewznabIndexer
from fetcharr.infrastructure.integrations.sabnzbd_client import SabnzbdClient

__all__ = ["NewznabIndexer", "SabnzbdClient"]
