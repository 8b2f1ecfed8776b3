from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple, Union

from errors import InvalidEpisodeFormat

EPISODE_DELIMITER = "::ep="
SERVER_TYPES = ("sub", "dub")


@dataclass(frozen=True)
class EpisodeRef:
    slug: str      # z.B. "one-piece-100"
    episode: str   # Episoden-Ordinal der Seite, z.B. "2142"

    @classmethod
    def parse(cls, value: str) -> "EpisodeRef":
        """Parse `<anime-slug>::ep=<episode-number>`; raises InvalidEpisodeFormat."""
        if not isinstance(value, str) or EPISODE_DELIMITER not in value:
            raise InvalidEpisodeFormat(f"invalid episode ID format: {value!r}")
        parts = value.split(EPISODE_DELIMITER)
        if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
            raise InvalidEpisodeFormat(f"invalid episode ID format: {value!r}")
        return cls(slug=parts[0].strip(), episode=parts[1].strip())

    @property
    def watch_path(self) -> str:
        return f"/watch/{self.slug}?ep={self.episode}"

    def __str__(self) -> str:
        return f"{self.slug}{EPISODE_DELIMITER}{self.episode}"


@dataclass(frozen=True)
class ServerRef:
    id: str
    name: str
    type: str                      # "sub" | "dub"
    index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type, "index": self.index}


@dataclass
class ServersResponse:
    episode: int = 0
    sub: List[ServerRef] = field(default_factory=list)
    dub: List[ServerRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "episode": self.episode,
            "sub": [s.to_dict() for s in self.sub],
            "dub": [s.to_dict() for s in self.dub],
        }


@dataclass(frozen=True)
class SourceItem:
    file: str
    type: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceItem":
        return cls(file=str(data.get("file") or ""), type=str(data.get("type") or ""))


@dataclass(frozen=True)
class Track:
    file: str
    kind: str = ""
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        label = data.get("label")
        return cls(
            file=str(data.get("file") or ""),
            kind=str(data.get("kind") or ""),
            label=str(label) if label else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"file": self.file, "kind": self.kind}
        if self.label:
            result["label"] = self.label
        return result


@dataclass(frozen=True)
class TimeRange:
    start: int = 0
    end: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TimeRange"]:
        if not isinstance(data, dict):
            return None
        try:
            return cls(start=int(float(data.get("start") or 0)), end=int(float(data.get("end") or 0)))
        except (TypeError, ValueError, OverflowError):
            return None

    def to_dict(self) -> Dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class EncryptedSources:
    ciphertext: str


@dataclass(frozen=True)
class PlainSources:
    items: Tuple[SourceItem, ...] = ()


Sources = Union[EncryptedSources, PlainSources]


def parse_sources(raw: Any) -> Sources:
    """Decide the shape of a getSources `sources` field once, at load time."""
    if isinstance(raw, str):
        return EncryptedSources(raw)
    if isinstance(raw, dict):
        # Mirrors return a single {"file": ...} object
        item = SourceItem.from_dict(raw)
        return PlainSources((item,) if item.file else ())
    if isinstance(raw, list):
        return PlainSources(tuple(SourceItem.from_dict(s) for s in raw if isinstance(s, dict)))
    return PlainSources()


@dataclass(frozen=True)
class RawSourcePayload:
    sources: Sources
    tracks: Tuple[Track, ...] = ()
    intro: Optional[TimeRange] = None
    outro: Optional[TimeRange] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RawSourcePayload":
        tracks = data.get("tracks")
        if not isinstance(tracks, list):
            tracks = []
        return cls(
            sources=parse_sources(data.get("sources")),
            tracks=tuple(Track.from_dict(t) for t in tracks if isinstance(t, dict)),
            intro=TimeRange.from_dict(data.get("intro")),
            outro=TimeRange.from_dict(data.get("outro")),
        )


@dataclass(frozen=True)
class StreamLink:
    file: str
    type: str = "hls"


@dataclass(frozen=True)
class StreamDescriptor:
    id: str
    type: str
    link: StreamLink
    server: str
    tracks: Tuple[Track, ...] = ()
    intro: Optional[TimeRange] = None
    outro: Optional[TimeRange] = None
    iframe: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "link": {"file": self.link.file, "type": self.link.type},
        }
        if self.tracks:
            result["tracks"] = [t.to_dict() for t in self.tracks]
        if self.intro is not None:
            result["intro"] = self.intro.to_dict()
        if self.outro is not None:
            result["outro"] = self.outro.to_dict()
        result["server"] = self.server
        if self.iframe:
            result["iframe"] = self.iframe
        return result


@dataclass
class EpisodeInfo:
    id: str
    title: str
    episode: int = 0
    url: str = ""
    jname: Optional[str] = None
    is_filler: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = {"id": self.id, "title": self.title, "url": self.url,
                  "episode": self.episode, "is_filler": self.is_filler}
        if self.jname:
            result["jname"] = self.jname
        return result


@dataclass
class EpisodesResponse:
    episodes: List[EpisodeInfo] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.episodes)

    def to_dict(self) -> Dict[str, Any]:
        return {"episodes": [e.to_dict() for e in self.episodes], "totalItems": self.total_items}


@dataclass
class AnimeItem:
    id: str
    title: str = ""
    poster: str = ""
    jname: Optional[str] = None
    type: Optional[str] = None
    duration: Optional[str] = None
    rating: Optional[str] = None
    sub: int = 0
    dub: int = 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"id": self.id, "title": self.title, "poster": self.poster}
        for key in ("jname", "type", "duration", "rating"):
            value = getattr(self, key)
            if value:
                result[key] = value
        result["episodes"] = {"sub": self.sub, "dub": self.dub, "eps": max(self.sub, self.dub)}
        return result


@dataclass
class SearchResponse:
    results: List[AnimeItem] = field(default_factory=list)
    current_page: int = 1
    has_next_page: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "hasNextPage": self.has_next_page,
            "currentPage": self.current_page,
        }
