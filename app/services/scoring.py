"""
Relevance scoring strategies.

Both strategies share one contract: ``prepare(profile)`` once per ranking
invocation, then ``score(profile, document_text) -> (score, rationale)`` for
every candidate. The embedding strategy degrades failures to a zero score;
the judge strategy is authoritative and lets ScoringServiceError propagate.
"""
from typing import Optional, Sequence, Tuple

import numpy as np

from app.helpers.prompts import JUDGE_PROMPT
from app.models.models import ApplicantProfile
from app.models.settings import RelaySettings, ScoringStrategy
from app.utils.exceptions import ScoringServiceError
from app.utils.logging_config import get_logger
from app.utils.utils import openai_embed, openai_generate, first_integer

logger = get_logger(__name__)

Score = Tuple[float, Optional[str]]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        logger.warning(f"Embedding dimensions differ: {va.shape} vs {vb.shape}")
        return 0.0
    den = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if den == 0.0:
        return 0.0
    num = float(np.dot(va, vb))
    return max(-1.0, min(1.0, num / den))


class RelevanceScorer:
    """Base class for the interchangeable scoring strategies."""

    strategy: ScoringStrategy

    def __init__(self, settings: RelaySettings):
        self.settings = settings

    def prepare(self, profile: ApplicantProfile) -> None:
        pass

    def score(self, profile: ApplicantProfile, document_text: str) -> Score:
        raise NotImplementedError


class EmbeddingScorer(RelevanceScorer):
    strategy = ScoringStrategy.EMBEDDING

    def __init__(self, settings: RelaySettings, embed=None):
        super().__init__(settings)
        self._embed = embed or (lambda text: openai_embed(text, settings))
        self._applicant_text = None
        self._applicant_vector = None

    def prepare(self, profile: ApplicantProfile) -> None:
        try:
            self._applicant_embedding(profile)
        except ScoringServiceError as e:
            # retried lazily per candidate
            logger.warning(f"Applicant embedding failed: {e.message}")

    def _applicant_embedding(self, profile: ApplicantProfile):
        text = profile.combined_text()
        if self._applicant_vector is None or self._applicant_text != text:
            self._applicant_vector = self._embed(text)
            self._applicant_text = text
        return self._applicant_vector

    def score(self, profile: ApplicantProfile, document_text: str) -> Score:
        if not document_text:
            return 0.0, None
        if not profile.combined_text():
            logger.warning("Applicant profile has no text to match against")
            return 0.0, None
        try:
            doc_vector = self._embed(document_text[:self.settings.embedding_char_limit])
            user_vector = self._applicant_embedding(profile)
        except ScoringServiceError as e:
            logger.warning(f"Embedding failed, scoring candidate as 0: {e.message}")
            return 0.0, None
        return cosine_similarity(user_vector, doc_vector), None


class JudgeScorer(RelevanceScorer):
    strategy = ScoringStrategy.JUDGE

    def __init__(self, settings: RelaySettings, generate=None):
        super().__init__(settings)
        self._generate = generate or (lambda prompt: openai_generate(prompt, settings))

    def build_prompt(self, profile: ApplicantProfile, document_text: str) -> str:
        return JUDGE_PROMPT.format(
            particularities=profile.particularities,
            improvement_goals=profile.improvement_goals,
            document=document_text[:self.settings.judge_char_limit],
        )

    def score(self, profile: ApplicantProfile, document_text: str) -> Score:
        if not document_text:
            return 0.0, None
        reply = self._generate(self.build_prompt(profile, document_text))
        value = first_integer(reply)
        if value is None:
            logger.warning(f"Judge reply has no score: {reply[:80]!r}")
            return 0.0, reply
        return float(max(0, min(100, value))), reply


def build_scorer(settings: RelaySettings) -> RelevanceScorer:
    if settings.scoring_strategy == ScoringStrategy.JUDGE:
        return JudgeScorer(settings)
    return EmbeddingScorer(settings)
