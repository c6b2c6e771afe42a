"""
Relay Settings Models for Configuration Management
"""
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, validator


class ScoringStrategy(str, Enum):
    """Available relevance scoring strategies"""
    EMBEDDING = "embedding"
    JUDGE = "judge"


class ReferenceField(str, Enum):
    """Response XML fields that can hold the bando document link"""
    BRIEF_SHEET = "schedasintetica"
    FULL_SHEET = "schedacompleta"


class RelaySettings(BaseModel):
    """Complete relay configuration, injected into every service"""

    # OpenAI-compatible model services
    openai_api_key: Optional[str] = Field(default=None, description="API key for the embedding/judging service")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="Base URL of the model API")
    embedding_model: str = Field(default="text-embedding-ada-002", description="Embedding model name")
    judge_model: str = Field(default="gpt-4o-mini", description="Chat model used for judged scoring")
    judge_temperature: float = Field(default=0.0, ge=0.0, le=2.0, description="Judge sampling temperature")

    # Ranking
    scoring_strategy: ScoringStrategy = Field(default=ScoringStrategy.EMBEDDING)
    top_n: int = Field(default=3, description="Number of bandi forwarded downstream")
    embedding_char_limit: int = Field(default=2000, ge=1, description="Document characters sent for embedding")
    judge_char_limit: int = Field(default=4000, ge=1, description="Document characters sent to the judge")
    max_concurrency: int = Field(default=1, ge=1, le=20, description="Candidates processed at once (1 = sequential)")
    abort_on_document_error: bool = Field(default=False, description="Abort the ranking when a PDF cannot be read")

    # Response XML layout
    container_tag: str = Field(default="child", description="Element wrapping one bando")
    name_field: str = Field(default="nomebando", description="Element holding the bando name")
    reference_field: ReferenceField = Field(default=ReferenceField.BRIEF_SHEET)
    document_suffix: str = Field(default=".pdf", description="Suffix a reference needs to be fetched")
    suffix_case_sensitive: bool = Field(default=True)

    # Relay endpoints
    upload_url: str = Field(default="https://xmlautomation-rt2n.onrender.com/upload-xml")
    response_url: str = Field(default="https://www.geniabusiness.com/ingplan/xmlbandiazienda.asp")
    pdf_proxy_url: Optional[str] = Field(default="https://xmlautomation-rt2n.onrender.com/pdf-proxy")
    webhook_url: Optional[str] = Field(default=None)
    response_delay_seconds: float = Field(default=30.0, ge=0.0, description="Wait between upload and fetch")
    request_timeout: int = Field(default=60, ge=1, le=600, description="HTTP timeout in seconds")

    @validator('top_n')
    def validate_top_n(cls, v):
        if v < 1:
            raise ValueError('top_n must be at least 1')
        return v

    @validator('document_suffix')
    def validate_suffix(cls, v):
        if not v:
            raise ValueError('document_suffix cannot be empty')
        return v

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """Build settings from environment variables (and a local .env file)"""
        load_dotenv()
        env = {
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "openai_base_url": os.getenv("OPENAI_BASE_URL"),
            "embedding_model": os.getenv("EMBED_MODEL"),
            "judge_model": os.getenv("JUDGE_MODEL"),
            "scoring_strategy": os.getenv("SCORING_STRATEGY"),
            "top_n": os.getenv("TOP_N"),
            "max_concurrency": os.getenv("MAX_CONCURRENCY"),
            "abort_on_document_error": os.getenv("ABORT_ON_DOCUMENT_ERROR"),
            "reference_field": os.getenv("REFERENCE_FIELD"),
            "suffix_case_sensitive": os.getenv("SUFFIX_CASE_SENSITIVE"),
            "upload_url": os.getenv("UPLOAD_URL"),
            "response_url": os.getenv("RESPONSE_URL"),
            "pdf_proxy_url": os.getenv("PDF_PROXY_URL"),
            "webhook_url": os.getenv("WEBHOOK_URL"),
            "response_delay_seconds": os.getenv("RESPONSE_DELAY_SECONDS"),
            "request_timeout": os.getenv("REQUEST_TIMEOUT"),
        }
        # unset variables fall back to the model defaults
        return cls(**{k: v for k, v in env.items() if v is not None})
