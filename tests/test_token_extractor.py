import sys
import os
import pytest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import TokenNotFound
from token_extractor import TokenExtractor

LONG_A = "a" * 24
LONG_B = "b" * 24


@pytest.fixture
def extractor():
    return TokenExtractor(MagicMock(), "https://hianime.to/")


def test_meta_wins_over_window_assignment(extractor):
    html = f"""
    <html><head><meta name="_gg_fb" content="metatoken123">
    <script>window._xy_ws = "{LONG_A}";</script></head></html>
    """
    assert extractor.extract_from_html(html) == "metatoken123"


def test_data_dpi_attribute(extractor):
    html = f'<div id="player" data-dpi="dpi-token-1"></div><script>window.x = "{LONG_A}";</script>'
    assert extractor.extract_from_html(html) == "dpi-token-1"


def test_empty_meta_falls_through(extractor):
    html = '<meta name="_gg_fb" content=""><div data-dpi="fromdpi"></div>'
    assert extractor.extract_from_html(html) == "fromdpi"


def test_nonce_script(extractor):
    html = '<script nonce="nonce-value-42">/* empty nonce script */</script>'
    assert extractor.extract_from_html(html) == "nonce-value-42"


def test_nonce_script_without_marker_is_ignored(extractor):
    html = '<script nonce="other">console.log(1)</script><!-- _is_th:commenttoken -->'
    assert extractor.extract_from_html(html) == "commenttoken"


def test_window_string_skips_short_values(extractor):
    html = f'<script>window.a = "short"; window.b = "{LONG_B}";</script>'
    assert extractor.extract_from_html(html) == LONG_B


def test_window_object_concatenates_string_values(extractor):
    html = '<script>window._lk_db = {"x": "aaaaaaaaaa", "y": "bbbbbbbbbb", "n": 5, "z": "cccc"};</script>'
    assert extractor.extract_from_html(html) == "aaaaaaaaaabbbbbbbbbbcccc"


def test_window_object_too_short(extractor):
    html = '<script>window._lk_db = {"x": "abc"};</script>'
    with pytest.raises(TokenNotFound):
        extractor.extract_from_html(html)


def test_comment_token(extractor):
    html = "<html><body><!-- _is_th:tok-123_abc --></body></html>"
    assert extractor.extract_from_html(html) == "tok-123_abc"


def test_no_token_raises(extractor):
    with pytest.raises(TokenNotFound):
        extractor.extract_from_html("<html><body><p>nothing here</p></body></html>")


def test_empty_html_raises(extractor):
    with pytest.raises(TokenNotFound):
        extractor.extract_from_html("")


def test_extract_fetches_with_site_referer():
    client = MagicMock()
    client.get.return_value.text = '<meta name="_gg_fb" content="fetched">'
    extractor = TokenExtractor(client, "https://hianime.to")
    deadline = MagicMock()

    assert extractor.extract("https://megacloud.blog/embed-2/v3/e-1/abc?k=1", deadline=deadline) == "fetched"
    client.get.assert_called_once_with(
        "https://megacloud.blog/embed-2/v3/e-1/abc?k=1",
        headers={'Referer': 'https://hianime.to/'},
        deadline=deadline,
    )
