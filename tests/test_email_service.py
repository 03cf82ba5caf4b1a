# tests/test_email_service.py
from unittest.mock import MagicMock, patch

import pytest

from services.email_service import (
    DigestEmailItem,
    EmailDeliveryError,
    pick_provider,
    render_digest_email,
    send_email,
)


def _item(i=1, title="Attention <is> all"):
    return DigestEmailItem(
        title=title,
        arxiv_id=f"2501.0000{i}",
        paper_url=f"https://ronbun.app/paper/2501.0000{i}",
        abs_url=f"https://arxiv.org/abs/2501.0000{i}",
        authors=["A", "B", "C", "D"],
        categories=["cs.LG"],
        reason="Keyword: attention",
    )


def test_render_escapes_and_counts():
    rendered = render_digest_email([_item()], user_name="Ada", app_url="https://ronbun.app/")

    assert rendered.subject == "Your Ronbun Digest — 1 paper"
    assert "Attention &lt;is&gt; all" in rendered.html
    assert "<is>" not in rendered.html
    assert "A, B, C et al." in rendered.html
    assert "https://ronbun.app/feed" in rendered.text
    assert "Reason: Keyword: attention" in rendered.text


def test_render_caps_items():
    rendered = render_digest_email([_item(i % 10) for i in range(30)])
    assert rendered.subject.endswith("20 papers")


def test_provider_selection(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
    monkeypatch.delenv("EMAIL_PROVIDER", raising=False)
    assert pick_provider() == "console"

    monkeypatch.setenv("SENDGRID_API_KEY", "sg")
    assert pick_provider() == "sendgrid"

    monkeypatch.setenv("RESEND_API_KEY", "re")
    assert pick_provider() == "resend"

    monkeypatch.setenv("EMAIL_PROVIDER", "sendgrid")
    assert pick_provider() == "sendgrid"


@patch("services.email_service.requests.post")
def test_provider_error_raises(mock_post, monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re")
    monkeypatch.delenv("EMAIL_PROVIDER", raising=False)
    mock_post.return_value = MagicMock(ok=False, status_code=422, text="bad from")

    with pytest.raises(EmailDeliveryError):
        send_email(["x@example.com"], "s", "<p>h</p>", "t")
