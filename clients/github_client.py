# clients/github_client.py
import base64
import logging
import os
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests
from cachetools import TTLCache, cached
from requests.exceptions import RequestException

from clients.arxiv_client import USER_AGENT

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_WEB_URL = "https://github.com"
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")

SHORTHAND_RE = re.compile(r"^(?:github:|gh:)?([a-z0-9_.-]+)/([a-z0-9_.-]+?)(?:\.git)?$", re.IGNORECASE)
SSH_RE = re.compile(r"^git@github\.com:([a-z0-9_.-]+)/([a-z0-9_.-]+?)(?:\.git)?$", re.IGNORECASE)

# Repo metadata changes slowly; keep lookups for ten minutes
_meta_cache: TTLCache = TTLCache(maxsize=512, ttl=600)


class GitHubAPIError(Exception):
    """Raised when the GitHub REST API returns an error."""
    pass


def parse_github_repo(value: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Parses a repository URL or shorthand into (owner, repo).
    Supports https URLs (with tree/blob paths), git@ SSH remotes and
    owner/repo shorthands with optional github:/gh: prefixes.
    """
    if not value:
        return None
    text = str(value).strip()

    match = SHORTHAND_RE.match(text) or SSH_RE.match(text)
    if match:
        return match.group(1), match.group(2)

    if text.startswith("//"):
        text = "https:" + text
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host != "github.com":
        return None

    parts = [p for p in parsed.path.strip("/").split("/") if p]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], re.sub(r"\.git$", "", parts[1], flags=re.IGNORECASE)
    if not owner or not repo:
        return None
    return owner, repo


def repo_url(owner: str, repo: str) -> str:
    return f"{GITHUB_WEB_URL}/{owner}/{repo}"


def _headers() -> Dict[str, str]:
    headers = {"Accept": "application/vnd.github+json", "User-Agent": USER_AGENT}
    if GITHUB_TOKEN:
        headers["Authorization"] = f"Bearer {GITHUB_TOKEN}"
    return headers


def _get(url: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
    try:
        return requests.get(url, headers=_headers(), params=params, timeout=15)
    except RequestException as e:
        raise GitHubAPIError(f"GitHub request failed: {e}") from e


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@cached(_meta_cache)
def fetch_repo_meta(owner: str, repo: str) -> Dict[str, Any]:
    """Stars, license and other repository metadata."""
    response = _get(f"{GITHUB_API_URL}/repos/{owner}/{repo}")
    if not response.ok:
        raise GitHubAPIError(f"GitHub error {response.status_code} for {owner}/{repo}")
    data = response.json() or {}

    license_info = data.get("license") or {}
    spdx = license_info.get("spdx_id")
    topics = data.get("topics")

    return {
        "owner": owner,
        "repo": repo,
        "full_name": data.get("full_name") or f"{owner}/{repo}",
        "url": data.get("html_url") or repo_url(owner, repo),
        "description": data.get("description"),
        "homepage": data.get("homepage"),
        "default_branch": data.get("default_branch"),
        "stars": _to_int(data.get("stargazers_count")),
        "forks": _to_int(data.get("forks_count")),
        "open_issues": _to_int(data.get("open_issues_count")),
        "topics": [str(t) for t in topics] if isinstance(topics, list) else [],
        "license": spdx if isinstance(spdx, str) and spdx != "NOASSERTION" else None,
        "archived": bool(data.get("archived")),
        "last_push_at": data.get("pushed_at"),
    }


def fetch_repo_readme(owner: str, repo: str, ref: Optional[str] = None) -> Optional[Dict[str, str]]:
    """Returns {path, sha, text} or None when the repository has no README."""
    params = {"ref": ref} if ref else None
    response = _get(f"{GITHUB_API_URL}/repos/{owner}/{repo}/readme", params=params)
    if response.status_code == 404:
        return None
    if not response.ok:
        raise GitHubAPIError(f"GitHub README error {response.status_code} for {owner}/{repo}")

    data = response.json() or {}
    content = data.get("content") or ""
    if not content:
        return None
    text = base64.b64decode(re.sub(r"\s+", "", content)).decode("utf-8", errors="replace")
    return {"path": data.get("path") or "README.md", "sha": data.get("sha") or "", "text": text}


def resolve_repos(inputs: List[str], include_readme: bool = False, ref: Optional[str] = None) -> List[Dict[str, Any]]:
    """Per-input metadata lookups; failures are reported inline, not raised."""
    results = []
    for value in dict.fromkeys(s.strip() for s in inputs if s and s.strip()):
        parsed = parse_github_repo(value)
        if not parsed:
            results.append({"input": value, "ok": False, "error": "Invalid GitHub repo URL or shorthand (owner/repo)"})
            continue
        owner, repo = parsed
        try:
            item = {"input": value, "ok": True, "owner": owner, "repo": repo, "meta": fetch_repo_meta(owner, repo)}
        except GitHubAPIError as e:
            logger.warning(f"Repo metadata lookup failed for {value}: {e}")
            results.append({"input": value, "ok": False, "error": "Failed to fetch metadata"})
            continue
        if include_readme:
            try:
                item["readme"] = fetch_repo_readme(owner, repo, ref)
            except GitHubAPIError as e:
                logger.warning(f"README lookup failed for {value}: {e}")
                item["readme"] = None
        results.append(item)
    return results
