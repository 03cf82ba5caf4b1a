# tests/test_watchlist_service.py
import logging

from database.models.user_model import WatchlistType
from services.watchlist_service import create_watchlist, serialize_watchlist


def test_create_logs_plain_type_name(db, caplog):
    with caplog.at_level(logging.INFO, logger="services.watchlist_service"):
        wl = create_watchlist(db, "user-1", WatchlistType.AUTHOR, "People", ["Ada Lovelace"], [])

    assert serialize_watchlist(wl)["type"] == "author"
    assert f"Created author watchlist {wl.id} for user-1" in caplog.text
    assert "WatchlistType" not in caplog.text
