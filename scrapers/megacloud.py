"""Megacloud strategies: the site's own embed (primary) and megacloud.blog v3."""

import re
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

from decryptor import KeyDerivation, decrypt
from errors import DecryptFailed, NoSourcesFound
from http_client import HttpClient
from key_provider import KeyProvider
from models import EpisodeRef, RawSourcePayload, ServerRef, StreamDescriptor
from normalizer import normalize
from scrapers.base import XHR_HEADERS, Deadline, Strategy, source_items
from token_extractor import TokenExtractor

logger = logging.getLogger(__name__)

SOURCE_ID_RE = re.compile(r"/([^/?]+)\?")
EMBED_BASE_RE = re.compile(r"^(https?://[^/]+(?:/[^/]+){3})")
EMBED_DATA_ID_RE = re.compile(r"""data-id=["']([\w-]+)["']""")


def parse_embed_link(link: str) -> Tuple[str, str]:
    """Split an embed link into (embed base URL, source id)."""
    source_match = SOURCE_ID_RE.search(link) if isinstance(link, str) else None
    if not source_match:
        raise NoSourcesFound("unable to extract sourceId from link")
    base_match = EMBED_BASE_RE.match(link)
    if not base_match:
        raise NoSourcesFound("could not extract base URL from embed link")
    return base_match.group(1), source_match.group(1)


def fetch_embed_link(client: HttpClient, base_url: str, server: ServerRef, episode: EpisodeRef,
                     deadline: Optional[Deadline] = None) -> str:
    """Ask the site which embed iframe serves this server."""
    url = f"{base_url}/ajax/v2/episode/sources?id={server.id}"
    headers = dict(XHR_HEADERS)
    headers['Referer'] = f"{base_url}{episode.watch_path}"
    data = client.get_json(url, headers=headers, deadline=deadline)
    link = data.get('link') if isinstance(data, dict) else None
    if not isinstance(link, str) or not link:
        raise NoSourcesFound("missing link in sources data")
    return link


class MegacloudStrategy(Strategy):
    """
    Primary path: embed link and key are fetched concurrently, then the token
    is scraped from the embed page and used to call getSources.
    """

    name = "megacloud"

    def __init__(self, client: HttpClient, keys: KeyProvider, tokens: TokenExtractor, base_url: str,
                 derivation: KeyDerivation = KeyDerivation.PBKDF2):
        self.client = client
        self.keys = keys
        self.tokens = tokens
        self.base_url = base_url.rstrip('/')
        self.derivation = derivation

    def resolve(self, server: ServerRef, episode: EpisodeRef, deadline: Deadline) -> StreamDescriptor:
        with ThreadPoolExecutor(max_workers=2) as pool:
            link_future = pool.submit(fetch_embed_link, self.client, self.base_url, server, episode, deadline)
            key_future = pool.submit(self.keys.megacloud_key, deadline=deadline)
            # Beide Ergebnisse abwarten, bevor es weitergeht
            link_error = link_future.exception()
            key_error = key_future.exception()

        if link_error is not None:
            raise link_error
        if key_error is not None:
            raise key_error
        link = link_future.result()
        key = key_future.result()

        embed_base, source_id = parse_embed_link(link)
        token = self.tokens.extract(f"{embed_base}/{source_id}?k=1&autoPlay=0&oa=0&asi=1", deadline=deadline)

        headers = dict(XHR_HEADERS)
        headers['Referer'] = f"{embed_base}/{source_id}?k=1"
        data = self.client.get_json(f"{embed_base}/getSources?id={source_id}&_k={token}",
                                    headers=headers, deadline=deadline)
        if not isinstance(data, dict):
            raise NoSourcesFound("unexpected getSources response")
        payload = RawSourcePayload.from_dict(data)

        items = source_items(payload, lambda ciphertext: decrypt(ciphertext, key, self.derivation))
        return normalize(items, payload, episode, server, iframe=link)


class MegacloudBlogStrategy(Strategy):
    """
    megacloud.blog v3 endpoint. Needs the client key embedded in the player
    page and, for encrypted payloads, the provider key from the key registry.
    """

    name = "megacloud-blog"

    def __init__(self, client: HttpClient, keys: KeyProvider, tokens: TokenExtractor, base_url: str,
                 sources_url: str, provider: str = "mega"):
        self.client = client
        self.keys = keys
        self.tokens = tokens
        self.base_url = base_url.rstrip('/')
        self.sources_url = sources_url
        self.provider = provider

    def resolve(self, server: ServerRef, episode: EpisodeRef, deadline: Deadline) -> StreamDescriptor:
        link = fetch_embed_link(self.client, self.base_url, server, episode, deadline)

        page = self.client.get(link, headers={'Referer': f"{self.base_url}/"}, deadline=deadline)
        html = page.text or ""
        match = EMBED_DATA_ID_RE.search(html)
        if not match:
            raise NoSourcesFound("could not extract data-id from embed page")
        source_id = match.group(1)
        client_key = self.tokens.extract_from_html(html)

        headers = dict(XHR_HEADERS)
        headers['Referer'] = link
        data = self.client.get_json(f"{self.sources_url}?id={source_id}&_k={client_key}",
                                    headers=headers, deadline=deadline)
        if not isinstance(data, dict):
            raise NoSourcesFound("unexpected getSources response")
        payload = RawSourcePayload.from_dict(data)

        def _decrypt(ciphertext: str) -> str:
            try:
                return decrypt(ciphertext, client_key, KeyDerivation.EVP_MD5)
            except DecryptFailed as e:
                logger.debug(f"Client key did not decrypt sources: {str(e)}")
            registry_key = self.keys.registry_key(self.provider, deadline=deadline)
            return decrypt(ciphertext, registry_key, KeyDerivation.EVP_MD5)

        items = source_items(payload, _decrypt)
        return normalize(items, payload, episode, server, iframe=link)
