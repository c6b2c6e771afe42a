import io
import re
from typing import List, Optional, Union
from xml.etree.ElementTree import Element, ParseError

import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException
from pdfminer.high_level import extract_pages
from pdfminer.layout import LTTextContainer
from pdfminer.pdfparser import PDFSyntaxError
from pdfminer.psparser import PSException

from app.models.models import CandidateRecord, NOT_AVAILABLE
from app.utils.exceptions import MalformedResponseError, DocumentDecodeError


def clean_text(x: str) -> str:
    x = re.sub(r'\s+', ' ', x).strip()
    return x


def _local_name(tag) -> Optional[str]:
    # comments and processing instructions carry a callable tag
    if not isinstance(tag, str):
        return None
    return tag.rsplit("}", 1)[-1]


def _first_text(node: Element, tag: str) -> Optional[str]:
    # {*} matches the field with or without a namespace
    child = node.find(f".//{{*}}{tag}")
    if child is None:
        return None
    return "".join(child.itertext()).strip()


def extract_candidates(
    raw: Union[str, bytes],
    container_tag: str = "child",
    name_field: str = "nomebando",
    reference_field: str = "schedasintetica",
) -> List[CandidateRecord]:
    """Read every bando element of a matching-service response, in document order.

    Returns an empty list when the XML is valid but holds no container
    elements. Raises MalformedResponseError when it is not XML at all.
    """
    if raw is None or not raw.strip():
        raise MalformedResponseError("Empty response document")
    try:
        root = ET.fromstring(raw)
    except (ParseError, DefusedXmlException) as e:
        raise MalformedResponseError(f"Response is not well-formed XML: {e}", cause=e) from e

    out = []
    containers = (el for el in root.iter() if _local_name(el.tag) == container_tag)
    for i, node in enumerate(containers):
        out.append(CandidateRecord(
            index=i,
            name=_first_text(node, name_field) or NOT_AVAILABLE,
            document_reference=_first_text(node, reference_field) or "",
        ))
    return out


def is_document_reference(ref: str, suffix: str = ".pdf", case_sensitive: bool = True) -> bool:
    if not ref:
        return False
    if case_sensitive:
        return ref.endswith(suffix)
    return ref.lower().endswith(suffix.lower())


def pdf_bytes_to_text(data: bytes, source: str = None) -> str:
    """Text of each page (units joined by spaces), pages joined by newlines."""
    pages = []
    try:
        for page in extract_pages(io.BytesIO(data)):
            units = [clean_text(el.get_text()) for el in page if isinstance(el, LTTextContainer)]
            pages.append(" ".join(u for u in units if u))
    except (PDFSyntaxError, PSException, ValueError, TypeError) as e:
        raise DocumentDecodeError(f"Could not decode PDF: {e}", url=source, cause=e) from e
    return "\n".join(pages)
