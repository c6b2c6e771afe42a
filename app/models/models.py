from pydantic import BaseModel, Field
from typing import List, Optional

NOT_AVAILABLE = "N/A"


class ApplicantProfile(BaseModel):
    particularities: str = ""
    improvement_goals: str = ""
    # pass-through identification, not used for scoring
    company_name: Optional[str] = None
    tax_id: Optional[str] = None
    legal_form: Optional[str] = None
    company_type: Optional[str] = None
    size: Optional[str] = None
    sector_code: Optional[str] = None
    province: Optional[str] = None
    email: Optional[str] = None

    class Config:
        frozen = True

    def combined_text(self) -> str:
        return f"{self.particularities or ''} {self.improvement_goals or ''}".strip()


class CandidateRecord(BaseModel):
    index: int
    name: str = NOT_AVAILABLE
    document_reference: str = ""
    score: float = 0.0


class ScoredResult(CandidateRecord):
    rationale: Optional[str] = None


class RankedResult(BaseModel):
    results: List[ScoredResult] = Field(default_factory=list)
    total_candidates: int


class NoOpportunities(BaseModel):
    """Terminal outcome: the response held no bandi at all"""
    total_candidates: int = 0
    message: str = "Nessun bando disponibile per questa azienda."
