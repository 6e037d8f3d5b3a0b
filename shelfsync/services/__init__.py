from shelfsync.services.google_books import GoogleBooksClient
from shelfsync.services.identity import (
    EntityKind,
    IdentityReconciler,
    Redirect,
    merge_key,
    transient_id,
)
from shelfsync.services.imports import ImportsService, ImportStatusPoller
from shelfsync.services.staleness import (
    GLOBAL_SCOPE,
    RefreshOutcome,
    StalenessTracker,
    format_elapsed,
)

__all__ = [
    # External catalog
    "GoogleBooksClient",
    # Identity
    "EntityKind",
    "IdentityReconciler",
    "Redirect",
    "merge_key",
    "transient_id",
    # Imports
    "ImportsService",
    "ImportStatusPoller",
    # Staleness
    "GLOBAL_SCOPE",
    "RefreshOutcome",
    "StalenessTracker",
    "format_elapsed",
]
