# clients/arxiv_client.py
import logging
import os
import random
import time
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import RequestException
from defusedxml import ElementTree as ET
from defusedxml.common import DefusedXmlException

from utils.id_normalization import strip_version
from utils.sanitization import clean_text

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ATOM_NS = "{http://www.w3.org/2005/Atom}"
ARXIV_NS = "{http://arxiv.org/schemas/atom}"

USER_AGENT = os.getenv(
    "ARXIV_USER_AGENT",
    f"ronbun/0.1 (+{os.getenv('APP_URL', 'https://example.com')}; mailto:contact@example.com)",
)

SORT_BY_VALUES = ("submittedDate", "lastUpdatedDate", "relevance")
SORT_ORDER_VALUES = ("ascending", "descending")

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 0.6


class ArxivAPIError(Exception):
    """Raised when the arXiv export API cannot be queried or parsed."""
    pass


def build_arxiv_params(query: str, start: int = 0, max_results: int = 25,
                       sort_by: str = "submittedDate", sort_order: str = "descending") -> Dict[str, Any]:
    return {
        "search_query": query,
        "start": start,
        "max_results": max_results,
        "sortBy": sort_by if sort_by in SORT_BY_VALUES else "submittedDate",
        "sortOrder": sort_order if sort_order in SORT_ORDER_VALUES else "descending",
    }


def _retry_delay(response: Optional[requests.Response], attempt: int) -> float:
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return float(retry_after)
    return RETRY_DELAY_SECONDS * (2 ** attempt) + random.uniform(0, 0.15)


def polite_get(url: str, params: Optional[Dict[str, Any]] = None, timeout: int = 20) -> requests.Response:
    """GET with a descriptive User-Agent, retrying 429/5xx and network errors."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "application/atom+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    last_error: Optional[Exception] = None

    for attempt in range(MAX_RETRIES + 1):
        try:
            response = requests.get(url, params=params, headers=headers, timeout=timeout)
        except RequestException as e:
            last_error = e
            if attempt == MAX_RETRIES:
                break
            logger.warning(f"arXiv request failed (attempt {attempt + 1}): {e}")
            time.sleep(_retry_delay(None, attempt))
            continue

        if response.status_code == 429 or 500 <= response.status_code < 600:
            last_error = ArxivAPIError(f"arXiv error {response.status_code}")
            if attempt == MAX_RETRIES:
                break
            delay = _retry_delay(response, attempt)
            logger.warning(f"arXiv returned {response.status_code}, retrying in {delay:.1f}s")
            time.sleep(delay)
            continue

        return response

    raise ArxivAPIError(f"arXiv fetch failed: {last_error}")


def _entry_text(entry, tag: str) -> str:
    elem = entry.find(tag)
    return elem.text if elem is not None and elem.text else ""


def parse_arxiv_atom(xml_text: str) -> List[Dict[str, Any]]:
    try:
        root = ET.fromstring(xml_text)
    except (ET.ParseError, DefusedXmlException) as e:
        logger.exception("Failed to parse arXiv API response")
        raise ArxivAPIError(f"Invalid arXiv Atom feed: {e}") from e

    papers = []
    for entry in root.findall(f"{ATOM_NS}entry"):
        id_href = _entry_text(entry, f"{ATOM_NS}id").strip()
        arxiv_id = id_href.rstrip("/").split("/abs/")[-1] if "/abs/" in id_href else ""
        title = clean_text(_entry_text(entry, f"{ATOM_NS}title"))
        if not arxiv_id or not title:
            continue

        categories = []
        for cat in entry.findall(f"{ATOM_NS}category"):
            term = cat.get("term")
            if term and term not in categories:
                categories.append(term)

        primary = entry.find(f"{ARXIV_NS}primary_category")
        primary_category = primary.get("term") if primary is not None else None
        if primary_category and primary_category not in categories:
            categories.append(primary_category)

        pdf_url = None
        for link in entry.findall(f"{ATOM_NS}link"):
            if link.get("type") == "application/pdf" or link.get("title") == "pdf":
                pdf_url = link.get("href")
                break

        authors = [
            clean_text(name.text)
            for a in entry.findall(f"{ATOM_NS}author")
            if (name := a.find(f"{ATOM_NS}name")) is not None and name.text and name.text.strip()
        ]

        published = _entry_text(entry, f"{ATOM_NS}published").strip() or None
        updated = _entry_text(entry, f"{ATOM_NS}updated").strip() or published

        papers.append({
            "arxiv_id": arxiv_id,
            "title": title,
            "summary": clean_text(_entry_text(entry, f"{ATOM_NS}summary")),
            "authors": authors,
            "categories": categories,
            "primary_category": primary_category,
            "published": published,
            "updated": updated,
            "pdf_url": pdf_url or f"https://arxiv.org/pdf/{strip_version(arxiv_id)}.pdf",
            "comment": clean_text(_entry_text(entry, f"{ARXIV_NS}comment")) or None,
        })

    return papers


def search_arxiv(query: str, start: int = 0, max_results: int = 25,
                 sort_by: str = "submittedDate", sort_order: str = "descending") -> List[Dict[str, Any]]:
    """
    Queries the arXiv export API (e.g. `cat:cs.LG`) and returns parsed entries.
    Raises ArxivAPIError on transport or parse failures.
    """
    params = build_arxiv_params(query, start, max_results, sort_by, sort_order)
    response = polite_get(ARXIV_API_URL, params=params)
    if not response.ok:
        raise ArxivAPIError(f"arXiv error {response.status_code}: {response.text[:200]}")
    return parse_arxiv_atom(response.text)
