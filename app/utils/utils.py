import re
from typing import Optional

import numpy as np
import requests

from app.models.settings import RelaySettings
from app.utils.exceptions import ConfigurationError, ScoringServiceError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

_INTEGER = re.compile(r"\d+")


def _auth_headers(settings: RelaySettings) -> dict:
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set", config_key="openai_api_key")
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {settings.openai_api_key}",
    }


def _post_model_api(settings: RelaySettings, path: str, payload: dict, model: str) -> dict:
    url = f"{settings.openai_base_url.rstrip('/')}/{path}"
    try:
        resp = requests.post(url, headers=_auth_headers(settings), json=payload,
                             timeout=settings.request_timeout)
    except requests.RequestException as e:
        raise ScoringServiceError(f"Request to {path} failed: {e}", model_name=model, cause=e) from e
    if not resp.ok:
        raise ScoringServiceError(
            f"Model API returned {resp.status_code} for {path}: {resp.reason}",
            model_name=model,
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as e:
        raise ScoringServiceError(f"Model API returned invalid JSON for {path}", model_name=model, cause=e) from e


def openai_embed(text: str, settings: RelaySettings) -> np.ndarray:
    logger.debug(f"Embedding request for text: {text[:50]}...")
    data = _post_model_api(
        settings,
        "embeddings",
        {"input": text, "model": settings.embedding_model},
        settings.embedding_model,
    )
    try:
        return np.array(data["data"][0]["embedding"], dtype=np.float64)
    except (KeyError, IndexError, TypeError) as e:
        raise ScoringServiceError("Embedding response has no vector", model_name=settings.embedding_model, cause=e) from e


def openai_generate(prompt: str, settings: RelaySettings) -> str:
    data = _post_model_api(
        settings,
        "chat/completions",
        {
            "model": settings.judge_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": settings.judge_temperature,
        },
        settings.judge_model,
    )
    try:
        return data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise ScoringServiceError("Judge response has no message", model_name=settings.judge_model, cause=e) from e


def first_integer(s: str) -> Optional[int]:
    match = _INTEGER.search(s or "")
    return int(match.group()) if match else None
