import time
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from bs4 import BeautifulSoup

from config_manager import ConfigManager, get_config
from errors import ScraperError, TransportError
from http_client import HttpClient
from key_provider import KeyProvider
from models import (
    EPISODE_DELIMITER,
    AnimeItem,
    EpisodeInfo,
    EpisodeRef,
    EpisodesResponse,
    SearchResponse,
    ServerRef,
    ServersResponse,
    StreamDescriptor,
)
from resolver import SourceResolver, build_default_resolver, select_server
from scrapers.base import XHR_HEADERS
from token_extractor import TokenExtractor

logger = logging.getLogger(__name__)

SERVER_SELECTOR = ".ps_-block .ps__-list .server-item[data-type='{kind}']"
EPISODE_SELECTOR = ".detail-infor-content .ss-list a"
SEARCH_ITEM_SELECTOR = ".film_list .film_list-wrap .flw-item"
SUGGESTION_SELECTOR = ".nav-item"


def _ajax_status_ok(status: Any) -> bool:
    # Die Seite liefert mal "success", mal true
    if isinstance(status, bool):
        return status
    if isinstance(status, str):
        return status == "success"
    raise ScraperError(f"unexpected status type: {type(status).__name__}")


def _tick_count(text: str) -> int:
    parts = (text or "").split()
    if not parts:
        return 0
    try:
        return int(parts[-1])
    except ValueError:
        return 0


def _text(element) -> str:
    return element.get_text(strip=True) if element is not None else ""


class HiAnimeScraper:
    """
    Scraper für die Seite. Liefert Server-, Episoden- und Suchdaten und
    delegiert die Stream-Auflösung an den SourceResolver.
    """

    def __init__(self, config: Optional[ConfigManager] = None, client: Optional[HttpClient] = None,
                 resolver: Optional[SourceResolver] = None):
        self.config = config or get_config()
        self.base_url = self.config.get('scraper.base_url').rstrip('/')
        self.rate_limit = float(self.config.get('scraper.rate_limit', 0) or 0)

        self.client = client or HttpClient(
            base_url=self.base_url,
            user_agent=self.config.get('scraper.user_agent'),
            timeout=self.config.get('scraper.timeout'),
            retries=self.config.get('scraper.max_retries'),
        )
        self.keys = KeyProvider(self.client, self.config.get('keys.megacloud_url'),
                                self.config.get('keys.registry_url'))
        self.tokens = TokenExtractor(self.client, self.base_url)
        self.resolver = resolver or build_default_resolver(self.config, self.client, self.keys, self.tokens)

    def _throttle(self):
        if self.rate_limit > 0:
            time.sleep(self.rate_limit)

    def _ajax_html(self, url: str, headers: Dict[str, str]) -> BeautifulSoup:
        """Fetch an AJAX endpoint answering {status, html} and parse the html part."""
        data = self.client.get_json(url, headers=headers)
        if not isinstance(data, dict):
            raise ScraperError(f"unexpected AJAX response from {url}")
        if not _ajax_status_ok(data.get('status')):
            raise ScraperError("API returned error status")
        return BeautifulSoup(data.get('html') or "", 'html.parser')

    def servers(self, episode_id: str) -> ServersResponse:
        """
        Listet die Sub- und Dub-Server einer Episode.

        Args:
            episode_id (str): Episode reference `<anime-slug>::ep=<n>`

        Returns:
            ServersResponse: Available servers per type
        """
        ref = EpisodeRef.parse(episode_id)
        self._throttle()

        headers = dict(XHR_HEADERS)
        headers['Referer'] = f"{self.base_url}{ref.watch_path}"
        soup = self._ajax_html(f"{self.base_url}/ajax/v2/episode/servers?episodeId={ref.episode}", headers)

        response = ServersResponse()
        try:
            response.episode = int(ref.episode)
        except ValueError:
            response.episode = 0

        for kind in ("sub", "dub"):
            found: List[ServerRef] = []
            for index, item in enumerate(soup.select(SERVER_SELECTOR.format(kind=kind))):
                found.append(ServerRef(id=item.get('data-id', ''), name=_text(item), type=kind, index=index))
            setattr(response, kind, found)

        logger.info(f"Found {len(response.sub)} sub and {len(response.dub)} dub servers for {ref}")
        return response

    def stream_links(self, episode_id: str, server_type: str = "sub", server_name: str = "HD-1") -> StreamDescriptor:
        """
        Resolve a playable stream for one episode on one server.

        The episode reference is validated before anything touches the network.
        """
        ref = EpisodeRef.parse(episode_id)
        servers = self.servers(str(ref))
        server = select_server(servers, server_type, server_name)
        logger.info(f"Resolving {ref} on {server.type}/{server.name} (id {server.id})")
        return self.resolver.resolve(server, ref)

    def episodes(self, anime_id: str) -> EpisodesResponse:
        """Episodenliste; die numerische ID ist der letzte Teil der Slug."""
        anime_id = (anime_id or "").strip()
        numeric_id = anime_id.split('-')[-1]
        if not numeric_id:
            raise ScraperError("invalid anime ID format")
        self._throttle()

        headers = dict(XHR_HEADERS)
        headers['Referer'] = f"{self.base_url}/watch/{anime_id}"
        soup = self._ajax_html(f"{self.base_url}/ajax/v2/episode/list/{numeric_id}", headers)

        response = EpisodesResponse()
        for link in soup.select(EPISODE_SELECTOR):
            href = link.get('href', '')
            number = ""
            if '?ep=' in href:
                number = href.split('?ep=')[-1]
            try:
                episode_number = int(number)
            except ValueError:
                episode_number = 0

            name_el = link.select_one('.ssli-detail .ep-name')
            title = _text(name_el)
            jname = name_el.get('data-jname') if name_el is not None else None
            classes = link.get('class') or []
            response.episodes.append(EpisodeInfo(
                id=f"{anime_id}{EPISODE_DELIMITER}{number}" if number else "",
                title=title or f"Episode {episode_number}",
                episode=episode_number,
                url=f"{self.base_url}{href}" if href.startswith('/') else href,
                jname=jname or None,
                is_filler='ssl-item-filler' in classes,
            ))

        logger.info(f"Found {response.total_items} episodes for {anime_id}")
        return response

    def _anime_item(self, element) -> AnimeItem:
        name = element.select_one('.film-detail .film-name .dynamic-name')
        item = AnimeItem(id="")
        if name is not None:
            href = (name.get('href') or '').lstrip('/')
            item.id = href.split('?ref=search')[0]
            item.title = _text(name)
            item.jname = (name.get('data-jname') or '').strip() or None

        poster = element.select_one('.film-poster .film-poster-img')
        if poster is not None:
            item.poster = (poster.get('data-src') or '').strip()

        item.duration = _text(element.select_one('.film-detail .fd-infor .fdi-item.fdi-duration')) or None
        item.type = _text(element.select_one('.film-detail .fd-infor .fdi-item')) or None
        item.rating = _text(element.select_one('.film-poster .tick-rate')) or None
        item.sub = _tick_count(_text(element.select_one('.film-poster .tick-sub')))
        item.dub = _tick_count(_text(element.select_one('.film-poster .tick-dub')))
        return item

    def search(self, keyword: str, page: int = 1) -> SearchResponse:
        if page < 1:
            page = 1
        self._throttle()

        url = f"{self.base_url}/search?keyword={quote_plus(keyword)}&page={page}"
        try:
            html = self.client.get(url).text
        except TransportError as e:
            logger.error(f"Search for '{keyword}' failed: {str(e)}")
            raise

        soup = BeautifulSoup(html, 'html.parser')
        response = SearchResponse(current_page=page)
        response.results = [self._anime_item(el) for el in soup.select(SEARCH_ITEM_SELECTOR)]
        response.has_next_page = soup.select_one('.pagination .next') is not None
        logger.info(f"Search '{keyword}' page {page}: {len(response.results)} results")
        return response

    def suggestions(self, keyword: str) -> SearchResponse:
        self._throttle()
        soup = self._ajax_html(f"{self.base_url}/ajax/search/suggest?keyword={quote_plus(keyword)}",
                               dict(XHR_HEADERS))

        response = SearchResponse(current_page=1, has_next_page=False)
        for nav in soup.select(SUGGESTION_SELECTOR):
            link = nav.find('a')
            if link is None:
                continue
            item = AnimeItem(id=(link.get('href') or '').split('/')[-1])
            item.title = _text(link.select_one('.srp-detail .film-name'))
            poster = link.select_one('.film-poster img')
            if poster is not None:
                item.poster = poster.get('data-src') or ''
            item.type = _text(link.select_one('.srp-detail .film-infor span')) or None
            response.results.append(item)
        return response
