import pytest
import requests
from unittest.mock import MagicMock, patch

import defusedxml.ElementTree as ET

from app.models.models import ScoredResult
from app.models.schemas import BusinessSubmission
from app.services.relay import (
    MatchingServiceClient, build_submission_xml, format_webhook_payload, deliver_webhook
)
from app.utils.exceptions import ConfigurationError, ResourceFetchError, WebhookDeliveryError


@pytest.fixture
def submission():
    return BusinessSubmission(
        nome_azienda="Rossi & Figli <Srl>",
        piva="01234567890",
        particolarita="Produzione olio",
        aspetti_da_migliorare="Export",
        forma_giuridica="SRL",
        tipologia_azienda="Agricola",
        dimensioni="Piccola",
        codice_ateco="01.26",
        provincia="BA",
        email="info@rossi.it",
    )


class TestSubmissionXml:
    """Test cases for serializing the submission for the matching service"""

    def test_layout_and_escaping(self, submission):
        xml = build_submission_xml(submission)

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "Rossi &amp; Figli &lt;Srl&gt;" in xml
        business = ET.fromstring(xml.encode("utf-8")).find("Business")
        assert [el.tag for el in business] == [
            "PartitaIva", "CompanyName", "FormaGiuridica", "Tipologia", "DimensioniAzienda",
            "CodiceIstatAteco", "Provincia", "Particolarita", "Email",
        ]
        assert business.find("CompanyName").text == "Rossi & Figli <Srl>"
        assert business.find("CodiceIstatAteco").text == "01.26"

    def test_missing_values_are_empty_elements(self):
        business = ET.fromstring(build_submission_xml(BusinessSubmission()).encode("utf-8")).find("Business")
        assert business.find("Email").text is None

    def test_profile_mapping(self, submission):
        profile = submission.to_profile()
        assert profile.particularities == "Produzione olio"
        assert profile.improvement_goals == "Export"
        assert profile.tax_id == "01234567890"


class TestMatchingServiceClient:
    """Test cases for the matching-service client"""

    @patch("app.services.relay.requests.post")
    def test_upload_posts_xml(self, mock_post, settings):
        mock_post.return_value = MagicMock(ok=True, status_code=200)

        MatchingServiceClient(settings).upload("<Businesses/>")

        args, kwargs = mock_post.call_args
        assert args[0] == settings.upload_url
        assert kwargs["headers"]["Content-Type"] == "application/xml"
        assert kwargs["data"] == b"<Businesses/>"

    @patch("app.services.relay.requests.post")
    def test_upload_failure_is_fatal(self, mock_post, settings):
        mock_post.return_value = MagicMock(ok=False, status_code=503, reason="Unavailable")

        with pytest.raises(ResourceFetchError):
            MatchingServiceClient(settings).upload("<Businesses/>")

    @patch("app.services.documents.requests.get")
    def test_fetch_response_text(self, mock_get, settings):
        mock_get.return_value = MagicMock(ok=True, status_code=200, content="<root>è</root>".encode("utf-8"))

        assert MatchingServiceClient(settings).fetch_response() == "<root>è</root>"

    @patch("app.services.relay.time.sleep")
    def test_wait_uses_configured_delay(self, mock_sleep, settings):
        MatchingServiceClient(settings.copy(update={"response_delay_seconds": 30})).wait_for_response()
        mock_sleep.assert_called_once_with(30)

        mock_sleep.reset_mock()
        MatchingServiceClient(settings).wait_for_response()
        mock_sleep.assert_not_called()


class TestWebhook:
    """Test cases for the webhook payload and delivery"""

    def test_payload_format(self):
        results = [
            ScoredResult(index=0, name="Bando A", document_reference="https://x.it/a.pdf", score=0.9),
            ScoredResult(index=2, name="Bando C", document_reference="", score=0.4),
        ]

        payload = format_webhook_payload(results, 5, "info@agri.it")

        assert payload == {
            "response": "numeroBandiTotali: 5 email=info@agri.it "
                        "bandi=Nome: Bando A, Link: https://x.it/a.pdf | Nome: Bando C, Link: "
        }

    @patch("app.services.relay.requests.post")
    def test_delivery(self, mock_post, settings):
        mock_post.return_value = MagicMock(ok=True, status_code=200)

        deliver_webhook({"response": "x"}, settings)

        mock_post.assert_called_once_with(settings.webhook_url, json={"response": "x"},
                                          timeout=settings.request_timeout)

    @patch("app.services.relay.requests.post")
    def test_delivery_failure(self, mock_post, settings):
        mock_post.side_effect = requests.ConnectionError("down")

        with pytest.raises(WebhookDeliveryError):
            deliver_webhook({"response": "x"}, settings)

    def test_missing_webhook_url(self, settings):
        with pytest.raises(ConfigurationError):
            deliver_webhook({"response": "x"}, settings.copy(update={"webhook_url": None}))
