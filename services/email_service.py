# services/email_service.py
import html
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_FROM = "Ronbun <no-reply@localhost>"
MAX_DIGEST_ITEMS = 20


class EmailDeliveryError(Exception):
    """Raised when an email provider rejects a message."""
    pass


@dataclass
class DigestEmailItem:
    title: str
    arxiv_id: str
    paper_url: str
    abs_url: str
    pdf_url: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    published: Optional[str] = None
    reason: Optional[str] = None
    benchmarks: List[str] = field(default_factory=list)


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _esc(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _app_url(app_url: Optional[str]) -> str:
    return (app_url or os.getenv("APP_URL") or "http://localhost:3000").rstrip("/")


def _author_line(authors: List[str]) -> str:
    line = ", ".join(authors[:3])
    return f"{line} et al." if len(authors) > 3 else line


def _render_item_html(item: DigestEmailItem) -> str:
    meta = [part for part in (
        item.categories[0] if item.categories else None,
        (item.published or "")[:10] or None,
        _author_line(item.authors) or None,
    ) if part]

    rows = [f'<div class="paper-title"><a href="{_esc(item.paper_url)}">{_esc(item.title)}</a></div>']
    if meta:
        rows.append(f'<div class="meta">{_esc(" • ".join(meta))}</div>')
    if item.reason:
        rows.append(f'<div class="meta">Reason: {_esc(item.reason)}</div>')

    links = [f'<a href="{_esc(item.abs_url)}">arXiv</a>']
    if item.pdf_url:
        links.append(f'<a href="{_esc(item.pdf_url)}">PDF</a>')
    rows.append(f'<div class="links">{" ".join(links)}</div>')

    if item.benchmarks:
        rows.append(f'<div class="chips"><span class="chip">Benchmarks: {_esc(", ".join(item.benchmarks[:3]))}</span></div>')

    return f'<tr><td class="item">{"".join(rows)}</td></tr>'


def render_digest_email(items: List[DigestEmailItem], user_name: Optional[str] = None,
                        app_url: Optional[str] = None) -> RenderedEmail:
    items = list(items or [])[:MAX_DIGEST_ITEMS]
    base_url = _app_url(app_url)
    count = len(items)
    subject = f"Your Ronbun Digest — {count} paper{'' if count == 1 else 's'}"
    intro = f"Hi{' ' + user_name if user_name else ''}, here's your digest of papers."

    body_html = "\n".join(_render_item_html(item) for item in items)
    html_doc = f"""<!doctype html>
<html>
  <head><meta charset="utf-8"><title>{_esc(subject)}</title></head>
  <body>
    <table role="presentation" class="wrapper" align="center" cellpadding="0" cellspacing="0">
      <tr><td class="header"><div class="title">Ronbun</div></td></tr>
      <tr><td class="inner"><p>{_esc(intro)}</p><p><a href="{_esc(base_url)}/feed" class="btn">Open feed</a></p></td></tr>
      {body_html}
      <tr><td class="footer">Sent by Ronbun · <a href="{_esc(base_url)}/settings/account">Preferences</a></td></tr>
    </table>
  </body>
</html>"""

    text_lines = [intro, ""]
    for index, item in enumerate(items, start=1):
        text_lines.append(f"{index}. {item.title}")
        if item.reason:
            text_lines.append(f"   Reason: {item.reason}")
        text_lines.append(f"   {item.paper_url}")
        text_lines.append(f"   arXiv: {item.abs_url}")
        text_lines.append("")
    text_lines.append(f"Open feed: {base_url}/feed")

    return RenderedEmail(subject=subject, html=html_doc, text="\n".join(text_lines))


def pick_provider() -> str:
    forced = os.getenv("EMAIL_PROVIDER", "").lower()
    if forced == "resend" and os.getenv("RESEND_API_KEY"):
        return "resend"
    if forced == "sendgrid" and os.getenv("SENDGRID_API_KEY"):
        return "sendgrid"
    if os.getenv("RESEND_API_KEY"):
        return "resend"
    if os.getenv("SENDGRID_API_KEY"):
        return "sendgrid"
    return "console"


def _parse_from(value: str) -> Dict[str, str]:
    match = re.match(r"^\s*(.*?)\s*<([^>]+)>\s*$", value)
    if match:
        return {"name": match.group(1), "email": match.group(2)}
    return {"email": value.strip()}


def _post(url: str, api_key: str, payload: Dict[str, Any], provider: str) -> None:
    try:
        response = requests.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=15,
        )
    except RequestException as e:
        raise EmailDeliveryError(f"{provider} request failed: {e}") from e
    if not response.ok:
        raise EmailDeliveryError(f"{provider} error {response.status_code}: {response.text[:200]}")


def send_email(to: List[str], subject: str, html_body: str, text_body: Optional[str] = None,
               sender: Optional[str] = None) -> str:
    """Sends through Resend or SendGrid when configured, otherwise logs. Returns the provider used."""
    provider = pick_provider()
    from_addr = sender or os.getenv("EMAIL_FROM") or DEFAULT_FROM

    if provider == "resend":
        _post(RESEND_URL, os.getenv("RESEND_API_KEY", ""), {
            "from": from_addr, "to": to, "subject": subject, "html": html_body, "text": text_body,
        }, "Resend")
    elif provider == "sendgrid":
        content = [{"type": "text/plain", "value": text_body}] if text_body else []
        content.append({"type": "text/html", "value": html_body})
        _post(SENDGRID_URL, os.getenv("SENDGRID_API_KEY", ""), {
            "personalizations": [{"to": [{"email": addr} for addr in to]}],
            "from": _parse_from(from_addr),
            "subject": subject,
            "content": content,
        }, "SendGrid")
    else:
        logger.info(f"📧 [console] to={', '.join(to)} subject={subject}")

    return provider


def send_digest_email(to: str, items: List[DigestEmailItem], user_name: Optional[str] = None,
                      app_url: Optional[str] = None) -> str:
    rendered = render_digest_email(items, user_name=user_name, app_url=app_url)
    return send_email([to], rendered.subject, rendered.html, rendered.text)
