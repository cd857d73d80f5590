"""Test match scoring and the accept/margin decision"""

import pytest

from conftest import make_track
from tunebridge.core.config import MatchingConfig
from tunebridge.core.models import SPOTIFY, YOUTUBE, CandidateMatch, Matched, NoMatch
from tunebridge.matching.scorer import MatchScorer, text_similarity


@pytest.fixture
def scorer():
    return MatchScorer(MatchingConfig())


def spotify(title, artist, duration=None, track_id="sp"):
    return make_track(SPOTIFY, track_id, title, artist, duration)


def youtube(title, artist, duration=None, track_id="yt"):
    return make_track(YOUTUBE, track_id, title, artist, duration)


class TestScore:
    """Test the similarity score"""

    def test_identical_tracks(self, scorer):
        """Same title, artist and duration score 1.0"""
        track = spotify("Midnight City", "M83", 244)
        assert scorer.score(track, track) == pytest.approx(1.0)

    def test_upload_noise_ignored(self, scorer):
        """Normalization removes upload decorations before comparing"""
        source = spotify("Midnight City", "M83", 244)
        candidate = youtube("Midnight City (Official Video)", "M83", 245)
        assert scorer.score(source, candidate) == pytest.approx(1.0)

    def test_symmetric(self, scorer):
        a = spotify("Take On Me", "a-ha", 225)
        b = youtube("Take On Me (1985 Version)", "A-ha", 231)
        assert scorer.score(a, b) == pytest.approx(scorer.score(b, a))

    def test_bounded(self, scorer):
        a = spotify("Midnight City", "M83", 244)
        b = youtube("Completely Different", "Other Artist", 30)
        assert 0.0 <= scorer.score(a, b) < 0.72

    def test_unknown_duration_renormalizes(self, scorer):
        """Without durations, title and artist alone can reach 1.0"""
        a = spotify("Midnight City", "M83")
        b = youtube("Midnight City", "M83", 244)
        assert scorer.score(a, b) == pytest.approx(1.0)

    def test_duration_mismatch_lowers_score(self, scorer):
        """A 20 second difference removes the whole duration component"""
        a = spotify("Midnight City", "M83", 244)
        b = youtube("Midnight City", "M83", 264)
        assert scorer.score(a, b) == pytest.approx(0.80)

    def test_score_decreases_with_title_edits(self, scorer):
        """Each further title edit lowers the score, artist and duration fixed"""
        source = spotify("Midnight City Lights", "M83", 244)
        edits = [
            "Midnight City Lights",
            "Midnight City Light",
            "Midnight Cty Light",
            "Midnigt Cty Light",
            "Midnigt Cty Lght",
            "Mdnigt Cty Lght",
        ]

        scores = [scorer.score(source, youtube(title, "M83", 244)) for title in edits]

        assert scores[0] == pytest.approx(1.0)
        assert all(earlier > later for earlier, later in zip(scores, scores[1:]))

    def test_stopword_only_titles_not_identical(self, scorer):
        """Titles that normalize to nothing are compared as written"""
        source = spotify("Video", "Band", 200)
        candidate = youtube("HD", "Band", 200)

        assert scorer.score(source, candidate) < 0.72
        assert scorer.decide(scorer.rank(source, [candidate])) == NoMatch("low-confidence")
        assert scorer.score(source, youtube("Video", "Band", 200)) == pytest.approx(1.0)
        assert scorer.score(spotify("[Untitled]", "Band", 200), candidate) < 0.72

    def test_token_order_ignored(self):
        assert text_similarity("city midnight", "midnight city") == pytest.approx(1.0)
        assert text_similarity("", "") == 1.0
        assert text_similarity("song", "") == 0.0


class TestDurationSimilarity:
    """Test the duration component"""

    def test_linear_falloff(self, scorer):
        assert scorer.duration_similarity(200, 202) == 1.0
        assert scorer.duration_similarity(200, 203) == 1.0
        assert scorer.duration_similarity(200, 209) == pytest.approx(0.5)
        assert scorer.duration_similarity(200, 215) == 0.0
        assert scorer.duration_similarity(200, 260) == 0.0

    def test_unknown(self, scorer):
        assert scorer.duration_similarity(None, 200) is None
        assert scorer.duration_similarity(200, None) is None


class TestDecide:
    """Test the accept threshold and margin rule"""

    def candidates(self, *scores):
        return [
            CandidateMatch(youtube("Song", "Band", track_id=f"v{i}"), score)
            for i, score in enumerate(scores)
        ]

    def test_no_results(self, scorer):
        assert scorer.decide([]) == NoMatch("no-results")

    def test_low_confidence(self, scorer):
        assert scorer.decide(self.candidates(0.71)) == NoMatch("low-confidence")

    def test_single_candidate_at_threshold(self, scorer):
        ranked = self.candidates(0.72)
        assert scorer.decide(ranked) == Matched(ranked[0].track, 0.72)

    def test_ambiguous(self, scorer):
        """0.80 vs 0.78 is too close to call"""
        assert scorer.decide(self.candidates(0.80, 0.78)) == NoMatch("ambiguous")

    def test_margin_exactly_at_threshold(self, scorer):
        """0.85 vs 0.80 clears the 0.05 margin"""
        ranked = self.candidates(0.85, 0.80)
        assert scorer.decide(ranked) == Matched(ranked[0].track, 0.85)

    def test_custom_thresholds(self):
        scorer = MatchScorer(MatchingConfig(accept_threshold=0.9, margin_threshold=0.0))
        assert scorer.decide(self.candidates(0.85)) == NoMatch("low-confidence")
        ranked = self.candidates(0.95, 0.95)
        assert scorer.decide(ranked) == Matched(ranked[0].track, 0.95)


class TestRank:
    """Test candidate ordering"""

    def test_best_first(self, scorer):
        source = spotify("Midnight City", "M83", 244)
        live = youtube("Midnight City Live at Coachella", "M83", 290, track_id="live")
        studio = youtube("Midnight City", "M83", 244, track_id="studio")

        ranked = scorer.rank(source, [live, studio])

        assert [c.track.track_id for c in ranked] == ["studio", "live"]
        assert ranked[0].score >= ranked[1].score

    def test_ties_keep_search_order(self, scorer):
        source = spotify("Midnight City", "M83", 244)
        first = youtube("Midnight City", "M83", 244, track_id="first")
        second = youtube("Midnight City", "M83", 244, track_id="second")

        ranked = scorer.rank(source, [first, second])

        assert [c.track.track_id for c in ranked] == ["first", "second"]
