"""modules/sync — Optimistic sync of local plan edits with the planning API."""

from modules.sync.models import SyncKind, SyncRequest, SyncPatch, SyncError
from modules.sync.reconciler import SyncReconciler, SyncBackend
from modules.sync.backends import HttpSyncBackend, LocalSyncBackend

__all__ = [
    "SyncKind",
    "SyncRequest",
    "SyncPatch",
    "SyncError",
    "SyncReconciler",
    "SyncBackend",
    "HttpSyncBackend",
    "LocalSyncBackend",
]
