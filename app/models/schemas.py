from pydantic import BaseModel
from typing import List, Optional

from app.models.models import ApplicantProfile, ScoredResult

# Input schema that matches the form payload posted by the CRM


class BusinessSubmission(BaseModel):
    """Business profile as submitted by the form (Italian wire names)"""
    nome_azienda: Optional[str] = None
    piva: Optional[str] = None
    particolarita: Optional[str] = None
    aspetti_da_migliorare: Optional[str] = None
    forma_giuridica: Optional[str] = None
    tipologia_azienda: Optional[str] = None
    dimensioni: Optional[str] = None
    codice_ateco: Optional[str] = None
    provincia: Optional[str] = None
    email: Optional[str] = None

    def to_profile(self) -> ApplicantProfile:
        return ApplicantProfile(
            particularities=self.particolarita or "",
            improvement_goals=self.aspetti_da_migliorare or "",
            company_name=self.nome_azienda,
            tax_id=self.piva,
            legal_form=self.forma_giuridica,
            company_type=self.tipologia_azienda,
            size=self.dimensioni,
            sector_code=self.codice_ateco,
            province=self.provincia,
            email=self.email,
        )


class ProcessResponse(BaseModel):
    message: str
    total_candidates: int = 0
    results: List[ScoredResult] = []
