import time
from typing import Dict, List
from xml.etree.ElementTree import Element, SubElement, tostring

import requests

from app.models.models import ScoredResult
from app.models.schemas import BusinessSubmission
from app.models.settings import RelaySettings
from app.services.documents import fetch_bytes
from app.utils.exceptions import ConfigurationError, ResourceFetchError, WebhookDeliveryError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

# (XML element, submission field), in the order the matching service expects
BUSINESS_FIELDS = [
    ("PartitaIva", "piva"),
    ("CompanyName", "nome_azienda"),
    ("FormaGiuridica", "forma_giuridica"),
    ("Tipologia", "tipologia_azienda"),
    ("DimensioniAzienda", "dimensioni"),
    ("CodiceIstatAteco", "codice_ateco"),
    ("Provincia", "provincia"),
    ("Particolarita", "particolarita"),
    ("Email", "email"),
]


def build_submission_xml(submission: BusinessSubmission) -> str:
    root = Element("Businesses")
    business = SubElement(root, "Business")
    for tag, field in BUSINESS_FIELDS:
        SubElement(business, tag).text = getattr(submission, field) or ""
    body = tostring(root, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{body}'


class MatchingServiceClient:
    """Talks to the external XML matching service."""

    def __init__(self, settings: RelaySettings):
        self.settings = settings

    def upload(self, xml_payload: str) -> None:
        logger.info(f"Uploading submission XML to {self.settings.upload_url}")
        try:
            resp = requests.post(
                self.settings.upload_url,
                data=xml_payload.encode("utf-8"),
                headers={"Content-Type": "application/xml"},
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as e:
            raise ResourceFetchError(f"Error uploading XML: {e}", url=self.settings.upload_url,
                                     service_name="matching-service", cause=e) from e
        if not resp.ok:
            raise ResourceFetchError(
                f"Error uploading XML: {resp.status_code} {resp.reason}",
                url=self.settings.upload_url,
                service_name="matching-service",
                status_code=resp.status_code,
            )

    def wait_for_response(self) -> None:
        if self.settings.response_delay_seconds > 0:
            logger.info(f"Waiting {self.settings.response_delay_seconds}s for the response XML")
            time.sleep(self.settings.response_delay_seconds)

    def fetch_response(self) -> str:
        data = fetch_bytes(self.settings.response_url, self.settings.request_timeout,
                           service_name="matching-service")
        text = data.decode("utf-8", errors="replace")
        logger.info(f"Response XML received: {text[:100]}...")
        return text


def format_webhook_payload(results: List[ScoredResult], total_candidates: int, email: str) -> Dict[str, str]:
    bandi = " | ".join(f"Nome: {r.name}, Link: {r.document_reference}" for r in results)
    return {"response": f"numeroBandiTotali: {total_candidates} email={email or ''} bandi={bandi}"}


def deliver_webhook(payload: Dict[str, str], settings: RelaySettings) -> None:
    if not settings.webhook_url:
        raise ConfigurationError("WEBHOOK_URL is not set", config_key="webhook_url")
    try:
        resp = requests.post(settings.webhook_url, json=payload, timeout=settings.request_timeout)
    except requests.RequestException as e:
        raise WebhookDeliveryError(f"Webhook delivery failed: {e}", cause=e) from e
    if not resp.ok:
        raise WebhookDeliveryError(
            f"Webhook returned {resp.status_code}: {resp.reason}",
            status_code=resp.status_code,
        )
    logger.info("Results delivered to webhook")
