"""Fetches decryption keys from externally maintained key files."""

import json
import logging
from typing import Optional

from errors import KeyFetchFailed, TransportError
from http_client import HttpClient

logger = logging.getLogger(__name__)


class KeyProvider:
    """
    Keys rotate upstream without code changes, so every call hits the remote
    source again. There is no cache and no fallback key.
    """

    def __init__(self, client: HttpClient, key_url: str, registry_url: str):
        self.client = client
        self.key_url = key_url
        self.registry_url = registry_url

    def fetch_key(self, source_url: str, field: Optional[str] = None,
                  deadline=None) -> str:
        """
        Fetch a key from `source_url`.

        Args:
            source_url (str): Plaintext or JSON key file
            field (Optional[str]): JSON field holding the key; None means the
                whole trimmed body is the key
            deadline: Optional Deadline bounding the fetch and its retries

        Returns:
            str: The key

        Raises:
            KeyFetchFailed: on transport errors, bad JSON, missing field or empty key
        """
        logger.debug(f"Fetching decryption key (field={field})")
        try:
            response = self.client.get(source_url, deadline=deadline)
        except TransportError as e:
            raise KeyFetchFailed(f"failed to fetch decryption key: {str(e)}") from e

        body = response.text or ""
        if field is None:
            key = body.strip()
        else:
            try:
                data = json.loads(body)
            except ValueError as e:
                raise KeyFetchFailed(f"failed to decode key registry: {str(e)}") from e
            if not isinstance(data, dict) or field not in data:
                raise KeyFetchFailed(f"key '{field}' not found in key registry")
            key = str(data[field] or "").strip()

        if not key:
            raise KeyFetchFailed(f"empty decryption key from {source_url}")
        return key

    def megacloud_key(self, deadline=None) -> str:
        return self.fetch_key(self.key_url, deadline=deadline)

    def registry_key(self, provider: str, deadline=None) -> str:
        return self.fetch_key(self.registry_url, field=provider, deadline=deadline)
