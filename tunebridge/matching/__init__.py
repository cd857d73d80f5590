"""
Track matching for tunebridge.

Components:
    - normalizer: Deterministic title/artist normalization
    - scorer: MatchScorer (weighted similarity + accept/margin rule)
    - pipeline: ResolutionPipeline (bounded-concurrency search and scoring)

Usage:
    from tunebridge.matching import ResolutionPipeline

    pipeline = ResolutionPipeline(config.matching, config.resolution)
    resolutions = pipeline.resolve(tracks, target_client)
"""

from tunebridge.matching.normalizer import normalize, normalize_text, search_query
from tunebridge.matching.pipeline import ResolutionPipeline
from tunebridge.matching.scorer import MatchScorer

__all__ = [
    "normalize",
    "normalize_text",
    "search_query",
    "MatchScorer",
    "ResolutionPipeline",
]
