# tests/test_id_normalization.py
import pytest

from utils.id_normalization import normalize_arxiv_id, parse_arxiv_id_list, split_arxiv_id, strip_version


@pytest.mark.parametrize("raw", [
    "2501.12345",
    "2501.12345v3",
    "  2501.12345v12 ",
    "https://arxiv.org/abs/2501.12345",
    "https://arxiv.org/abs/2501.12345v2",
    "http://ARXIV.org/pdf/2501.12345v1.pdf",
    "arxiv.org/pdf/2501.12345",
])
def test_supported_forms_share_base_id(raw):
    assert normalize_arxiv_id(raw) == "2501.12345"


@pytest.mark.parametrize("raw", [None, "", "   ", "2501.1234", "25011.12345", "hello", "2501.12345v", "https://example.com/2501"])
def test_malformed_inputs_are_not_found(raw):
    assert normalize_arxiv_id(raw) is None


def test_split_arxiv_id_defaults_version():
    assert split_arxiv_id("2501.00001") == ("2501.00001", 1)
    assert split_arxiv_id("2501.00001v4") == ("2501.00001", 4)


def test_strip_version():
    assert strip_version("2501.00001v2") == "2501.00001"
    assert strip_version("2501.00001") == "2501.00001"


def test_parse_list_drops_invalid_dedupes_and_caps():
    raw = "2501.00001, junk, https://arxiv.org/abs/2501.00001v2, 2501.00002v1, 2501.00003"
    assert parse_arxiv_id_list(raw, cap=2) == ["2501.00001", "2501.00002"]
    assert parse_arxiv_id_list(["x", "2501.00009"]) == ["2501.00009"]
    assert parse_arxiv_id_list(None) == []
