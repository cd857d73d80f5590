"""
Match scoring between a source track and a target-platform candidate.

The score is a weighted sum of three components, each in [0, 1]:

    title     0.45  rapidfuzz token_sort_ratio on normalized titles
    artist    0.35  rapidfuzz token_sort_ratio on normalized artists
    duration  0.20  1.0 within duration_full_credit_sec, falling linearly
                    to 0.0 at duration_zero_credit_sec

A field that normalizes to nothing is compared in its raw lowercased
form, so two different stopword-only titles do not look identical.

If either track has no known duration, the duration term is dropped and
the title/artist weights are renormalized to sum to 1.

The score is symmetric (score(a, b) == score(b, a)) and identical tracks
score exactly 1.0. Album is not scored: platforms disagree too often on
album naming (singles, compilations, deluxe editions) for it to help.

The accept/margin decision on top of these scores lives in decide().
"""

from rapidfuzz import fuzz

from tunebridge.core.config import MatchingConfig
from tunebridge.core.models import (
    REASON_AMBIGUOUS,
    REASON_LOW_CONFIDENCE,
    REASON_NO_RESULTS,
    CandidateMatch,
    Matched,
    NoMatch,
    Track,
)
from tunebridge.matching.normalizer import normalize_text


TITLE_WEIGHT = 0.45
ARTIST_WEIGHT = 0.35
DURATION_WEIGHT = 0.20

MARGIN_EPSILON = 1e-9


def comparable_text(text: str) -> str:
    """
    Normalized field for scoring, or the raw lowercased field when
    normalization leaves nothing (titles like "Video" or "[Untitled]").
    """
    return normalize_text(text) or " ".join(text.lower().split())


def text_similarity(a: str, b: str) -> float:
    """
    Token-order-insensitive similarity of two normalized strings in [0, 1].

    Two empty strings are identical (1.0). One empty string scores 0.0.
    """
    if not a and not b:
        return 1.0
    return fuzz.token_sort_ratio(a, b) / 100.0


class MatchScorer:
    """
    Scores candidate tracks and applies the accept/margin rule.

    Example:
        scorer = MatchScorer(config.matching)
        candidates = scorer.rank(source, results)
        outcome = scorer.decide(candidates)
    """

    def __init__(self, config: MatchingConfig | None = None) -> None:
        self.config = config or MatchingConfig()

    def duration_similarity(self, a: int | None, b: int | None) -> float | None:
        """
        Duration proximity in [0, 1], or None if either duration is unknown.

        Example (defaults 3s/15s):
            diff 2s -> 1.0, diff 9s -> 0.5, diff 20s -> 0.0
        """
        if a is None or b is None:
            return None
        diff = abs(a - b)
        full = self.config.duration_full_credit_sec
        zero = self.config.duration_zero_credit_sec
        if diff <= full:
            return 1.0
        if diff >= zero:
            return 0.0
        return 1.0 - (diff - full) / (zero - full)

    def score(self, source: Track, candidate: Track) -> float:
        """Weighted similarity of two tracks in [0, 1]."""
        title = text_similarity(comparable_text(source.title), comparable_text(candidate.title))
        artist = text_similarity(comparable_text(source.artist), comparable_text(candidate.artist))
        duration = self.duration_similarity(source.duration_seconds, candidate.duration_seconds)

        if duration is None:
            total = (TITLE_WEIGHT * title + ARTIST_WEIGHT * artist) / (TITLE_WEIGHT + ARTIST_WEIGHT)
        else:
            total = TITLE_WEIGHT * title + ARTIST_WEIGHT * artist + DURATION_WEIGHT * duration

        return max(0.0, min(1.0, total))

    def rank(self, source: Track, candidates: list[Track]) -> list[CandidateMatch]:
        """
        Score every candidate, best first.

        Ties keep the platform's search order (sorted() is stable).
        """
        scored = [CandidateMatch(track=c, score=self.score(source, c)) for c in candidates]
        return sorted(scored, key=lambda m: m.score, reverse=True)

    def decide(self, ranked: list[CandidateMatch]) -> Matched | NoMatch:
        """
        Apply the decision rule to ranked candidates.

        Accept the best candidate when its score reaches accept_threshold
        AND it leads the runner-up by at least margin_threshold. A single
        candidate has no runner-up and only needs the accept threshold.

        Returns:
            Matched, or NoMatch("no-results" | "low-confidence" | "ambiguous").
        """
        if not ranked:
            return NoMatch(REASON_NO_RESULTS)

        best = ranked[0]
        if best.score < self.config.accept_threshold:
            return NoMatch(REASON_LOW_CONFIDENCE)

        if len(ranked) > 1:
            margin = best.score - ranked[1].score
            # Tolerance keeps 0.85 - 0.80 from falling below 0.05 in floating point
            if margin < self.config.margin_threshold - MARGIN_EPSILON:
                return NoMatch(REASON_AMBIGUOUS)

        return Matched(target_track=best.track, score=best.score)
