from concurrent.futures import ThreadPoolExecutor
from typing import List, Union

from app.helpers.parsing import extract_candidates
from app.models.models import (
    ApplicantProfile, CandidateRecord, ScoredResult, RankedResult, NoOpportunities
)
from app.models.settings import RelaySettings
from app.services.documents import DocumentTextExtractor
from app.services.scoring import RelevanceScorer, build_scorer
from app.utils.exceptions import ResourceFetchError
from app.utils.logging_config import get_logger, PerformanceMonitor

logger = get_logger(__name__)


def sort_and_truncate(scored: List[ScoredResult], top_n: int) -> List[ScoredResult]:
    # original index is the explicit tie-break
    return sorted(scored, key=lambda r: (-r.score, r.index))[:top_n]


class RankingPipeline:
    """Turns a matching-service XML response into the top-N bandi for one applicant."""

    def __init__(self, settings: RelaySettings, documents: DocumentTextExtractor = None,
                 scorer: RelevanceScorer = None):
        self.settings = settings
        self.documents = documents or DocumentTextExtractor(settings)
        self.scorer = scorer

    def document_text(self, candidate: CandidateRecord) -> str:
        if not self.documents.accepts(candidate.document_reference):
            return ""
        try:
            return self.documents.extract(candidate.document_reference)
        except ResourceFetchError as e:
            if self.settings.abort_on_document_error:
                raise
            logger.warning(f"Bando {candidate.index}: document unavailable, using empty text ({e.message})")
            return ""

    def _score_candidate(self, profile: ApplicantProfile, candidate: CandidateRecord,
                         scorer: RelevanceScorer) -> ScoredResult:
        text = self.document_text(candidate)
        score, rationale = scorer.score(profile, text)
        logger.info(f"Bando {candidate.index} ({candidate.name}) - score {score}")
        return ScoredResult(**{**candidate.dict(), "score": score, "rationale": rationale})

    def rank(self, profile: ApplicantProfile, raw_document, top_n: int = None,
             scorer: RelevanceScorer = None) -> Union[RankedResult, NoOpportunities]:
        if top_n is None:
            top_n = self.settings.top_n
        if top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")
        scorer = scorer or self.scorer or build_scorer(self.settings)

        candidates = extract_candidates(
            raw_document,
            container_tag=self.settings.container_tag,
            name_field=self.settings.name_field,
            reference_field=self.settings.reference_field.value,
        )
        if not candidates:
            logger.warning("No bandi found in the response document")
            return NoOpportunities()
        logger.info(f"Found {len(candidates)} bandi, scoring with {scorer.strategy.value}")

        with PerformanceMonitor(f"Ranking {len(candidates)} bandi", logger, threshold_ms=60000):
            scorer.prepare(profile)
            if self.settings.max_concurrency > 1:
                with ThreadPoolExecutor(max_workers=self.settings.max_concurrency) as pool:
                    scored = list(pool.map(lambda c: self._score_candidate(profile, c, scorer), candidates))
            else:
                scored = [self._score_candidate(profile, c, scorer) for c in candidates]

        top = sort_and_truncate(scored, top_n)
        logger.info(f"Top {len(top)} bandi: {[r.name for r in top]}")
        return RankedResult(results=top, total_candidates=len(candidates))
