"""Shared pieces of the stream extraction strategies."""

import json
import time
import logging
from typing import Callable, List, Optional

from errors import DecryptFailed, ResolutionTimeout
from models import (
    EncryptedSources,
    EpisodeRef,
    PlainSources,
    RawSourcePayload,
    ServerRef,
    SourceItem,
    StreamDescriptor,
    parse_sources,
)

logger = logging.getLogger(__name__)

XHR_HEADERS = {'X-Requested-With': 'XMLHttpRequest'}


class Deadline:
    """Time budget for a whole resolution, shared by all strategies."""

    def __init__(self, seconds: Optional[float], clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires = None if seconds is None else clock() + float(seconds)

    def remaining(self) -> Optional[float]:
        """Seconds left, or None without a limit. Raises ResolutionTimeout once expired."""
        if self._expires is None:
            return None
        left = self._expires - self._clock()
        if left <= 0:
            raise ResolutionTimeout("stream resolution timed out")
        return left


class Strategy:
    """One self-contained way of turning a ServerRef into a StreamDescriptor."""

    name = "strategy"

    def resolve(self, server: ServerRef, episode: EpisodeRef, deadline: Deadline) -> StreamDescriptor:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def source_items(payload: RawSourcePayload, decrypt_fn: Callable[[str], str]) -> List[SourceItem]:
    """
    Return the playable sources of a payload, decrypting them first when the
    upstream sent a ciphertext instead of a list.
    """
    sources = payload.sources
    if isinstance(sources, EncryptedSources):
        if not sources.ciphertext:
            return []
        logger.debug("Decrypting encrypted sources")
        plaintext = decrypt_fn(sources.ciphertext)
        try:
            decoded = parse_sources(json.loads(plaintext))
        except ValueError as e:
            raise DecryptFailed(f"failed to parse decrypted sources: {str(e)}") from e
        if not isinstance(decoded, PlainSources):
            raise DecryptFailed("decrypted sources are not a source list")
        sources = decoded
    return [item for item in sources.items if item.file]
