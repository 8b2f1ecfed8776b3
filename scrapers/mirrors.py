"""Fallback mirrors (megaplay, vidwish) that serve episodes by site ordinal."""

import re
import logging
from typing import Optional

from decryptor import KeyDerivation, decrypt
from errors import DecryptFailed, NoSourcesFound
from http_client import HttpClient
from key_provider import KeyProvider
from models import EpisodeRef, RawSourcePayload, ServerRef, StreamDescriptor
from normalizer import normalize
from scrapers.base import XHR_HEADERS, Deadline, Strategy, source_items

logger = logging.getLogger(__name__)

DATA_ID_RE = re.compile(r"""data-id=["'](\d+)["']""")


class MirrorStrategy(Strategy):
    """
    Stream page -> numeric data-id -> getSources. Mirrors usually answer with
    a plain {"file": ...} object; an encrypted answer needs `registry_provider`.
    """

    def __init__(self, client: HttpClient, host: str, keys: Optional[KeyProvider] = None,
                 registry_provider: Optional[str] = None):
        self.client = client
        self.host = host
        self.keys = keys
        self.registry_provider = registry_provider
        self.name = host

    def stream_page_url(self, server: ServerRef, episode: EpisodeRef) -> str:
        return f"https://{self.host}/stream/s-2/{episode.episode}/{server.type}"

    def resolve(self, server: ServerRef, episode: EpisodeRef, deadline: Deadline) -> StreamDescriptor:
        page_url = self.stream_page_url(server, episode)
        page = self.client.get(page_url, headers={'Referer': f"https://{self.host}/"},
                               deadline=deadline)

        match = DATA_ID_RE.search(page.text or "")
        if not match:
            raise NoSourcesFound(f"could not extract data-id from {self.host}")
        real_id = match.group(1)
        logger.debug(f"{self.host} data-id for episode {episode.episode}: {real_id}")

        headers = dict(XHR_HEADERS)
        headers['Referer'] = page_url
        data = self.client.get_json(f"https://{self.host}/stream/getSources?id={real_id}",
                                    headers=headers, deadline=deadline)
        if not isinstance(data, dict):
            raise NoSourcesFound(f"unexpected getSources response from {self.host}")
        payload = RawSourcePayload.from_dict(data)

        items = source_items(payload, lambda ciphertext: self._decrypt(ciphertext, deadline))
        return normalize(items, payload, episode, server, iframe=page_url)

    def _decrypt(self, ciphertext: str, deadline: Deadline) -> str:
        if self.keys is None or not self.registry_provider:
            raise DecryptFailed(f"{self.host} returned encrypted sources and no key is configured")
        key = self.keys.registry_key(self.registry_provider, deadline=deadline)
        return decrypt(ciphertext, key, KeyDerivation.EVP_MD5)
