import os

# must be set before app.main configures logging
os.environ.setdefault("ENVIRONMENT", "testing")

import pytest

from app.models.models import ApplicantProfile
from app.models.settings import RelaySettings


@pytest.fixture
def settings():
    return RelaySettings(
        openai_api_key="sk-test",
        pdf_proxy_url=None,
        webhook_url="https://hooks.example.com/bandi",
        response_delay_seconds=0,
    )


@pytest.fixture
def profile():
    return ApplicantProfile(
        particularities="Azienda agricola biologica con vendita diretta",
        improvement_goals="Digitalizzazione e energia rinnovabile",
        company_name="Agri Srl",
        email="info@agri.it",
    )


@pytest.fixture
def response_xml():
    return make_response_xml


def make_response_xml(*bandi, reference_tag="schedasintetica"):
    """Build a matching-service response with one <child> per (name, reference) pair."""
    children = []
    for name, ref in bandi:
        parts = []
        if name is not None:
            parts.append(f"<nomebando>{name}</nomebando>")
        if ref is not None:
            parts.append(f"<{reference_tag}>{ref}</{reference_tag}>")
        children.append(f"<child>{''.join(parts)}</child>")
    return f'<?xml version="1.0" encoding="UTF-8"?><root>{"".join(children)}</root>'
