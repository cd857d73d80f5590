"""
Conversion module for tunebridge.

Turns resolved tracks into target playlist changes:
    - orchestrator: convert a playlist into a new target playlist
    - reconciler: sync an existing mapping with its source playlist
    - writer: retried add/remove calls shared by both

Usage:
    from tunebridge.conversion import ConversionOrchestrator, SyncReconciler

    orchestrator = ConversionOrchestrator(store, pipeline, locks)
    result = orchestrator.convert(playlist_id, spotify, youtube)

    reconciler = SyncReconciler(store, pipeline, locks)
    result = reconciler.sync(store.load_mapping(playlist_id), spotify, youtube)
"""

from tunebridge.conversion.orchestrator import ConversionOrchestrator
from tunebridge.conversion.reconciler import SyncReconciler
from tunebridge.conversion.writer import PlaylistWriter

__all__ = [
    "ConversionOrchestrator",
    "SyncReconciler",
    "PlaylistWriter",
]
