# clients/pwc_client.py
import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import quote, quote_plus

import requests
from requests.exceptions import RequestException

from clients.arxiv_client import USER_AGENT
from utils.id_normalization import strip_version

logger = logging.getLogger(__name__)

PWC_API_URL = "https://paperswithcode.com/api/v1"
PWC_WEB_URL = "https://paperswithcode.com"
PWC_API_TOKEN = os.getenv("PWC_API_TOKEN", "")

MAX_SOTA_LINKS = 8


class PwcAPIError(Exception):
    """Raised when the Papers with Code API returns an error."""
    pass


def build_pwc_search_by_arxiv(arxiv_id: str) -> str:
    return f"{PWC_WEB_URL}/search?q={quote_plus('arXiv:' + strip_version(arxiv_id))}"


def build_pwc_search_by_title(title: str) -> str:
    return f"{PWC_WEB_URL}/search?q={quote_plus(title)}"


def _absolutize(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{PWC_WEB_URL}{'' if path.startswith('/') else '/'}{path}"


def _fetch_json(url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    if PWC_API_TOKEN:
        headers["Authorization"] = f"Token {PWC_API_TOKEN}"
    try:
        response = requests.get(url, headers=headers, params=params, timeout=15)
    except RequestException as e:
        raise PwcAPIError(f"PwC request failed: {e}") from e
    if not response.ok:
        raise PwcAPIError(f"PwC error {response.status_code}")
    data = response.json()
    return data if isinstance(data, dict) else {}


def _results(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    results = data.get("results")
    return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []


def find_paper_by_arxiv_id(arxiv_id: str) -> Optional[Dict[str, Any]]:
    papers = _results(_fetch_json(f"{PWC_API_URL}/papers/", params={"arxiv_id": arxiv_id}))
    if not papers:
        return None
    for paper in papers:
        if (paper.get("arxiv_id") or "").strip().lower() == arxiv_id.lower():
            return paper
    return papers[0]


def find_top_repo(paper_id: str) -> Optional[Dict[str, Any]]:
    try:
        repos = _results(_fetch_json(f"{PWC_API_URL}/papers/{quote(paper_id)}/repositories/"))
    except PwcAPIError as e:
        logger.info(f"PwC repositories lookup failed for {paper_id}: {e}")
        return None
    if not repos:
        return None
    return max(repos, key=lambda r: r.get("stars") if isinstance(r.get("stars"), (int, float)) else 0)


def find_sota_links(paper_id: str) -> List[Dict[str, str]]:
    try:
        results = _results(_fetch_json(f"{PWC_API_URL}/papers/{quote(paper_id)}/results/"))
    except PwcAPIError as e:
        logger.info(f"PwC results lookup failed for {paper_id}: {e}")
        return []

    links = []
    seen = set()
    for result in results:
        task = result.get("task") or {}
        dataset = result.get("dataset") or {}
        task_name = (task.get("name") or "").strip()
        dataset_name = (dataset.get("name") or "").strip()
        if not task_name or not dataset_name or (task_name, dataset_name) in seen:
            continue
        seen.add((task_name, dataset_name))

        task_slug = (task.get("slug") or "").strip()
        dataset_slug = (dataset.get("slug") or "").strip()
        if task_slug and dataset_slug:
            url = f"{PWC_WEB_URL}/sota/{quote(task_slug)}-on-{quote(dataset_slug)}"
        else:
            url = f"{PWC_WEB_URL}/search?q={quote_plus(task_name + ' ' + dataset_name)}"

        links.append({"label": f"{task_name} on {dataset_name}", "url": url})
        if len(links) >= MAX_SOTA_LINKS:
            break
    return links


def lookup_pwc_by_arxiv(arxiv_id: str) -> Dict[str, Any]:
    """
    Maps an arXiv base id to its Papers with Code page, most-starred repo
    and leaderboard links. `found` is False when PwC has no entry.
    """
    base_id = strip_version(arxiv_id)
    search_url = build_pwc_search_by_arxiv(base_id)

    paper = find_paper_by_arxiv_id(base_id)
    if not paper:
        return {"found": False, "paper_url": None, "repo_url": None, "repo_stars": None,
                "search_url": search_url, "sota_links": []}

    paper_id = str(paper.get("id") or "")
    repo = find_top_repo(paper_id) if paper_id else None
    stars = repo.get("stars") if repo else None

    return {
        "found": True,
        "paper_url": _absolutize(paper.get("url")),
        "repo_url": repo.get("url") if repo else None,
        "repo_stars": stars if isinstance(stars, (int, float)) else None,
        "search_url": search_url,
        "sota_links": find_sota_links(paper_id) if paper_id else [],
    }
