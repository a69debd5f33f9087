"""Services for mochi-sync."""

from mochi_sync.services.extractor import CardExtractor, TextPatch, apply_patches
from mochi_sync.services.fingerprint import compute_fingerprint, render_content
from mochi_sync.services.mochi_client import (
    DeckNotFound,
    MochiAPIError,
    MochiClient,
    RateLimited,
    RemoteCardRef,
    RemoteDeck,
    ServiceError,
    extract_remote_id,
)
from mochi_sync.services.reconciler import Reconciler
from mochi_sync.services.sync_runner import SyncInProgressError, SyncRunner
from mochi_sync.services.vault import Vault

__all__ = [
    "CardExtractor",
    "DeckNotFound",
    "MochiAPIError",
    "MochiClient",
    "RateLimited",
    "Reconciler",
    "RemoteCardRef",
    "RemoteDeck",
    "ServiceError",
    "SyncInProgressError",
    "SyncRunner",
    "TextPatch",
    "Vault",
    "apply_patches",
    "compute_fingerprint",
    "extract_remote_id",
    "render_content",
]
