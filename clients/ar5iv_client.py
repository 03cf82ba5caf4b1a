# clients/ar5iv_client.py
import logging
import re
from typing import List
from urllib.parse import urljoin, urlparse

import aiohttp

from clients.arxiv_client import USER_AGENT
from clients.github_client import parse_github_repo, repo_url

logger = logging.getLogger(__name__)

AR5IV_HTML_URL = "https://ar5iv.org/html/{arxiv_id}"
GITHUB_HREF_RE = re.compile(r"""href\s*=\s*["']([^"']*github\.com/[^"'\s#]+)["']""", re.IGNORECASE)


def extract_github_urls(html: str) -> List[str]:
    """Collects github.com links from anchor hrefs, normalized to repository roots."""
    seen = []
    for match in GITHUB_HREF_RE.finditer(html or ""):
        raw = match.group(1)
        if raw.startswith("//"):
            raw = "https:" + raw
        cleaned = re.sub(r"[),.;]+$", "", raw)
        absolute = urljoin("https://ar5iv.org", cleaned)
        host = (urlparse(absolute).hostname or "").lower()
        if not host.endswith("github.com"):
            continue

        parsed = parse_github_repo(absolute)
        url = repo_url(*parsed) if parsed else absolute
        if url not in seen:
            seen.append(url)
    return seen


async def fetch_ar5iv_github_urls(arxiv_id: str) -> List[str]:
    """
    Scans the ar5iv HTML rendering of a paper for GitHub links.
    A missing page is a normal outcome and yields an empty list.
    """
    url = AR5IV_HTML_URL.format(arxiv_id=arxiv_id)
    headers = {"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"}

    async with aiohttp.ClientSession(headers=headers) as session:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=20)) as resp:
            if resp.status != 200:
                logger.info(f"ar5iv returned {resp.status} for {arxiv_id}")
                return []
            html = await resp.text()

    return extract_github_urls(html)
