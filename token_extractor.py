"""Extracts the `_k` authorization token from megacloud embed pages."""

import re
import json
import logging
from typing import Callable, List, Optional

from bs4 import BeautifulSoup, Comment

from errors import TokenNotFound
from http_client import HttpClient

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 20
NONCE_MARKER = "empty nonce script"

WINDOW_STRING_RE = re.compile(r"""window\.(\w+)\s*=\s*["']([\w-]+)["']""")
WINDOW_OBJECT_RE = re.compile(r"window\.(\w+)\s*=\s*(\{[\s\S]*?\});")
COMMENT_TOKEN_RE = re.compile(r"^_is_th:([\w-]+)$")


def _from_meta(soup: BeautifulSoup, html: str) -> Optional[str]:
    meta = soup.find('meta', attrs={'name': '_gg_fb'})
    if meta:
        return (meta.get('content') or '').strip() or None
    return None


def _from_data_attribute(soup: BeautifulSoup, html: str) -> Optional[str]:
    for element in soup.find_all(attrs={'data-dpi': True}):
        value = (element.get('data-dpi') or '').strip()
        if value:
            return value
    return None


def _from_nonce(soup: BeautifulSoup, html: str) -> Optional[str]:
    for script in soup.find_all('script', attrs={'nonce': True}):
        if NONCE_MARKER in script.get_text():
            nonce = (script.get('nonce') or '').strip()
            if nonce:
                return nonce
    return None


def _from_window_string(soup: BeautifulSoup, html: str) -> Optional[str]:
    for match in WINDOW_STRING_RE.finditer(html):
        if len(match.group(2)) >= MIN_TOKEN_LENGTH:
            return match.group(2)
    return None


def _from_window_object(soup: BeautifulSoup, html: str) -> Optional[str]:
    for match in WINDOW_OBJECT_RE.finditer(html):
        try:
            parsed = json.loads(match.group(2))
        except ValueError:
            continue
        if not isinstance(parsed, dict):
            continue
        joined = "".join(v for v in parsed.values() if isinstance(v, str))
        if len(joined) >= MIN_TOKEN_LENGTH:
            return joined
    return None


def _from_comment(soup: BeautifulSoup, html: str) -> Optional[str]:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        match = COMMENT_TOKEN_RE.match(comment.strip())
        if match:
            return match.group(1)
    return None


# Reihenfolge = Priorität
PROBES: List[Callable[[BeautifulSoup, str], Optional[str]]] = [
    _from_meta,
    _from_data_attribute,
    _from_nonce,
    _from_window_string,
    _from_window_object,
    _from_comment,
]


class TokenExtractor:
    def __init__(self, client: HttpClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip('/')

    def extract(self, page_url: str, deadline=None) -> str:
        """Fetch `page_url` and return the first token found, see extract_from_html."""
        response = self.client.get(page_url, headers={'Referer': f"{self.base_url}/"}, deadline=deadline)
        return self.extract_from_html(response.text)

    def extract_from_html(self, html: str) -> str:
        soup = BeautifulSoup(html or "", 'html.parser')
        for probe in PROBES:
            token = probe(soup, html or "")
            if token:
                logger.debug(f"Token found via {probe.__name__}")
                return token
        raise TokenNotFound("no token found")
