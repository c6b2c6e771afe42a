import requests

from app.helpers.parsing import pdf_bytes_to_text, is_document_reference
from app.models.settings import RelaySettings
from app.utils.exceptions import ResourceFetchError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def fetch_bytes(url: str, timeout: int, params: dict = None, service_name: str = None) -> bytes:
    try:
        resp = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        raise ResourceFetchError(f"Could not fetch {url}: {e}", url=url, service_name=service_name, cause=e) from e
    if not resp.ok:
        raise ResourceFetchError(
            f"Fetching {url} returned {resp.status_code}: {resp.reason}",
            url=url,
            service_name=service_name,
            status_code=resp.status_code,
        )
    return resp.content


class DocumentTextExtractor:
    """Downloads a bando PDF and returns its plain text."""

    def __init__(self, settings: RelaySettings):
        self.settings = settings

    def accepts(self, reference: str) -> bool:
        return is_document_reference(
            reference,
            self.settings.document_suffix,
            self.settings.suffix_case_sensitive,
        )

    def extract(self, reference: str) -> str:
        logger.info(f"Extracting text from PDF: {reference}")
        if self.settings.pdf_proxy_url:
            data = fetch_bytes(self.settings.pdf_proxy_url, self.settings.request_timeout,
                               params={"url": reference}, service_name="pdf-proxy")
        else:
            data = fetch_bytes(reference, self.settings.request_timeout, service_name="pdf")
        text = pdf_bytes_to_text(data, source=reference)
        logger.debug(f"Extracted {len(text)} characters from {reference}")
        return text
