"""
Stream source resolution.

Strategies run strictly in order (primary first); the first one producing a
playable link wins and the rest are never called. A failing strategy only
moves the resolver on to the next one.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from errors import AllStrategiesExhausted, ScraperError, ServerNotFound
from models import SERVER_TYPES, EpisodeRef, ServerRef, ServersResponse, StreamDescriptor
from scrapers.base import Deadline, Strategy
from scrapers.megacloud import MegacloudBlogStrategy, MegacloudStrategy
from scrapers.mirrors import MirrorStrategy

logger = logging.getLogger(__name__)


def select_server(servers: ServersResponse, server_type: str, server_name: str) -> ServerRef:
    """Pick the server by type and case-insensitive name. No network access."""
    kind = (server_type or "").strip().lower()
    if kind not in SERVER_TYPES:
        raise ServerNotFound(f"server not found: {server_name} ({server_type})")
    candidates = servers.sub if kind == "sub" else servers.dub
    wanted = (server_name or "").strip().lower()
    for server in candidates:
        if server.name.strip().lower() == wanted:
            return server
    raise ServerNotFound(f"server not found: {server_name} ({server_type})")


class SourceResolver:
    def __init__(self, strategies: Sequence[Strategy], timeout: Optional[float] = None):
        self.strategies = list(strategies)
        self.timeout = timeout

    def resolve(self, server: ServerRef, episode: EpisodeRef) -> StreamDescriptor:
        """
        Run the strategies for `server`.

        Args:
            server (ServerRef): Selected server offering
            episode (EpisodeRef): Parsed episode reference

        Returns:
            StreamDescriptor: Result of the first successful strategy

        Raises:
            AllStrategiesExhausted: when every strategy failed
        """
        deadline = Deadline(self.timeout)
        errors: List[Tuple[str, Exception]] = []
        last_error: Optional[Exception] = None

        for index, strategy in enumerate(self.strategies, start=1):
            logger.debug(f"Trying strategy {index}/{len(self.strategies)}: {strategy.name}")
            try:
                descriptor = strategy.resolve(server, episode, deadline)
            except Exception as e:
                # Jeder Fehler beendet nur diese Strategie
                logger.warning(f"Extraction method {strategy.name} failed: {str(e)}",
                               exc_info=not isinstance(e, ScraperError))
                errors.append((strategy.name, e))
                last_error = e
                continue

            if descriptor is not None and descriptor.link.file:
                logger.info(f"Resolved {episode} ({server.type}/{server.name}) via {strategy.name}")
                return descriptor

            last_error = ScraperError(f"{strategy.name} returned no playable link")
            errors.append((strategy.name, last_error))

        raise AllStrategiesExhausted(last_error, errors)


def build_default_resolver(config, client, keys, tokens) -> SourceResolver:
    """Primary megacloud, then megaplay, vidwish and megacloud.blog, in that order."""
    base_url = config.get('scraper.base_url')
    provider = config.get('keys.registry_provider', 'mega')
    strategies = [
        MegacloudStrategy(client, keys, tokens, base_url),
        MirrorStrategy(client, config.get('resolver.megaplay_host'), keys=keys, registry_provider=provider),
        MirrorStrategy(client, config.get('resolver.vidwish_host'), keys=keys, registry_provider=provider),
        MegacloudBlogStrategy(client, keys, tokens, base_url, config.get('resolver.megacloud_blog_url'),
                              provider=provider),
    ]
    return SourceResolver(strategies, timeout=config.get('resolver.timeout'))
