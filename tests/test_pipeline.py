import pytest
from unittest.mock import MagicMock, patch

from app.models.models import NoOpportunities, RankedResult
from app.models.settings import ScoringStrategy
from app.services.documents import DocumentTextExtractor
from app.services.pipeline import RankingPipeline
from app.services.scoring import RelevanceScorer, EmbeddingScorer, JudgeScorer
from app.utils.exceptions import (
    ScoringServiceError, ResourceFetchError, MalformedResponseError
)


class FakeDocuments(DocumentTextExtractor):
    """Serves document text from a dict instead of downloading PDFs"""

    def __init__(self, settings, texts, failing=()):
        super().__init__(settings)
        self.texts = texts
        self.failing = set(failing)
        self.fetched = []

    def extract(self, reference):
        self.fetched.append(reference)
        if reference in self.failing:
            raise ResourceFetchError("404", url=reference, status_code=404)
        return self.texts.get(reference, "")


class TextScorer(RelevanceScorer):
    """Scores a document by looking its text up in a table"""

    strategy = ScoringStrategy.EMBEDDING

    def __init__(self, settings, scores):
        super().__init__(settings)
        self.scores = scores
        self.seen = []
        self.prepared = 0

    def prepare(self, profile):
        self.prepared += 1

    def score(self, profile, document_text):
        self.seen.append(document_text)
        return self.scores.get(document_text, 0.0), None


class TestRankingPipeline:
    """Test cases for the bando ranking pipeline"""

    def test_ties_keep_extraction_order(self, settings, profile, response_xml):
        """Equal scores keep input order; all candidates returned when fewer than top_n"""
        xml = response_xml(("A", "x.pdf"), ("B", "y.pdf"), ("C", ""))
        docs = FakeDocuments(settings, {"x.pdf": "tx", "y.pdf": "ty"})
        scorer = TextScorer(settings, {"tx": 0.9, "ty": 0.9, "": 0.1})

        result = RankingPipeline(settings, documents=docs).rank(profile, xml, top_n=3, scorer=scorer)

        assert isinstance(result, RankedResult)
        assert [r.name for r in result.results] == ["A", "B", "C"]
        assert [r.score for r in result.results] == [0.9, 0.9, 0.1]
        assert result.total_candidates == 3

    def test_sorted_descending_and_truncated(self, settings, profile, response_xml):
        xml = response_xml(*[(f"B{i}", f"{i}.pdf") for i in range(6)])
        docs = FakeDocuments(settings, {f"{i}.pdf": f"t{i}" for i in range(6)})
        scorer = TextScorer(settings, {"t0": 0.2, "t1": 0.8, "t2": 0.5, "t3": 0.8, "t4": 0.1, "t5": 0.9})

        result = RankingPipeline(settings, documents=docs).rank(profile, xml, top_n=3, scorer=scorer)

        assert [r.name for r in result.results] == ["B5", "B1", "B3"]
        assert result.total_candidates == 6
        assert len(scorer.seen) == 6
        assert scorer.prepared == 1

    def test_default_top_n_from_settings(self, settings, profile, response_xml):
        xml = response_xml(*[(f"B{i}", "") for i in range(5)])
        scorer = TextScorer(settings, {})

        result = RankingPipeline(settings).rank(profile, xml, scorer=scorer)

        assert len(result.results) == 3
        assert [r.index for r in result.results] == [0, 1, 2]

    @pytest.mark.parametrize("top_n", [0, -1])
    def test_non_positive_top_n_rejected(self, top_n, settings, profile, response_xml):
        """An explicit top_n below 1 is an error, never the configured default"""
        xml = response_xml(("A", ""), ("B", ""), ("C", ""))
        scorer = TextScorer(settings, {})

        with pytest.raises(ValueError):
            RankingPipeline(settings).rank(profile, xml, top_n=top_n, scorer=scorer)

        assert scorer.seen == []

    def test_top_n_larger_than_candidates(self, settings, profile, response_xml):
        xml = response_xml(("A", ""), ("B", ""))

        result = RankingPipeline(settings).rank(profile, xml, top_n=10, scorer=TextScorer(settings, {}))

        assert len(result.results) == 2

    def test_no_candidates_returns_marker_without_scoring(self, settings, profile):
        """Zero <child> nodes is the no-opportunities outcome and the scorer is never called"""
        scorer = MagicMock(spec=RelevanceScorer)

        result = RankingPipeline(settings).rank(profile, "<root></root>", scorer=scorer)

        assert isinstance(result, NoOpportunities)
        assert result.total_candidates == 0
        scorer.prepare.assert_not_called()
        scorer.score.assert_not_called()

    def test_non_pdf_reference_is_not_fetched(self, settings, profile, response_xml):
        """Non-PDF references score 0 under the embedding strategy without a fetch"""
        xml = response_xml(("Pagina", "https://x.it/bando.html"), ("Vuoto", ""))
        docs = FakeDocuments(settings, {})
        embed = MagicMock(return_value=(1.0, 0.0))
        scorer = EmbeddingScorer(settings, embed=embed)

        result = RankingPipeline(settings, documents=docs).rank(profile, xml, scorer=scorer)

        assert docs.fetched == []
        assert [r.score for r in result.results] == [0.0, 0.0]
        embed.assert_called_once_with(profile.combined_text())

    def test_document_failure_degrades_to_empty_text(self, settings, profile, response_xml):
        xml = response_xml(("A", "a.pdf"), ("B", "b.pdf"))
        docs = FakeDocuments(settings, {"b.pdf": "tb"}, failing={"a.pdf"})
        scorer = TextScorer(settings, {"tb": 0.7})

        result = RankingPipeline(settings, documents=docs).rank(profile, xml, scorer=scorer)

        assert [r.name for r in result.results] == ["B", "A"]
        assert scorer.seen == ["", "tb"]

    def test_document_failure_can_abort(self, settings, profile, response_xml):
        settings = settings.copy(update={"abort_on_document_error": True})
        xml = response_xml(("A", "a.pdf"))
        docs = FakeDocuments(settings, {}, failing={"a.pdf"})

        with pytest.raises(ResourceFetchError):
            RankingPipeline(settings, documents=docs).rank(profile, xml, scorer=TextScorer(settings, {}))

    def test_malformed_response_aborts(self, settings, profile):
        with pytest.raises(MalformedResponseError):
            RankingPipeline(settings).rank(profile, "<root>", scorer=TextScorer(settings, {}))

    @patch("app.utils.utils.requests.post")
    def test_judge_failure_on_second_candidate_aborts(self, mock_post, settings, profile, response_xml):
        """An HTTP 500 from the judge aborts the whole ranking, no partial result"""
        ok = MagicMock(ok=True, status_code=200)
        ok.json.return_value = {"choices": [{"message": {"content": "80 ottimo"}}]}
        error = MagicMock(ok=False, status_code=500, reason="Internal Server Error")
        mock_post.side_effect = [ok, error, ok]

        xml = response_xml(("A", "a.pdf"), ("B", "b.pdf"), ("C", "c.pdf"))
        docs = FakeDocuments(settings, {"a.pdf": "ta", "b.pdf": "tb", "c.pdf": "tc"})
        pipeline = RankingPipeline(settings, documents=docs)

        with pytest.raises(ScoringServiceError) as exc_info:
            pipeline.rank(profile, xml, scorer=JudgeScorer(settings))

        assert exc_info.value.status_code == 500
        assert mock_post.call_count == 2

    def test_judge_rationale_is_kept(self, settings, profile, response_xml):
        xml = response_xml(("A", "a.pdf"))
        docs = FakeDocuments(settings, {"a.pdf": "ta"})
        scorer = JudgeScorer(settings, generate=lambda prompt: "64 - buona coerenza")

        result = RankingPipeline(settings, documents=docs).rank(profile, xml, scorer=scorer)

        assert result.results[0].score == 64.0
        assert result.results[0].rationale == "64 - buona coerenza"

    def test_bounded_concurrency_keeps_score_order(self, settings, profile, response_xml):
        """Parallel processing yields the same ranking as sequential"""
        settings = settings.copy(update={"max_concurrency": 4})
        xml = response_xml(*[(f"B{i}", f"{i}.pdf") for i in range(8)])
        texts = {f"{i}.pdf": f"t{i}" for i in range(8)}
        scores = {f"t{i}": s for i, s in enumerate([0.3, 0.7, 0.7, 0.1, 0.9, 0.0, 0.7, 0.2])}

        result = RankingPipeline(settings, documents=FakeDocuments(settings, texts)).rank(
            profile, xml, top_n=4, scorer=TextScorer(settings, scores))

        assert [r.name for r in result.results] == ["B4", "B1", "B2", "B6"]

    def test_scorer_built_from_settings(self, settings, profile, response_xml):
        settings = settings.copy(update={"scoring_strategy": ScoringStrategy.JUDGE})
        pipeline = RankingPipeline(settings, documents=FakeDocuments(settings, {}))

        with patch("app.services.pipeline.build_scorer") as mock_build:
            mock_build.return_value = TextScorer(settings, {})
            pipeline.rank(profile, response_xml(("A", "")))

        mock_build.assert_called_once_with(settings)
