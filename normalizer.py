"""Maps whatever a strategy produced into one StreamDescriptor."""

from typing import Optional, Sequence

from errors import NoSourcesFound
from models import EpisodeRef, RawSourcePayload, ServerRef, SourceItem, StreamDescriptor, StreamLink


def normalize(sources: Sequence[SourceItem], payload: RawSourcePayload, episode: EpisodeRef,
              server: ServerRef, iframe: Optional[str] = None) -> StreamDescriptor:
    """
    Build the canonical descriptor. Only the first source becomes `link`;
    additional qualities are dropped.
    """
    if not sources or not sources[0].file.strip():
        raise NoSourcesFound("no streaming sources found")

    first = sources[0]
    return StreamDescriptor(
        id=str(episode),
        type=server.type,
        link=StreamLink(file=first.file.strip(), type=first.type or "hls"),
        server=server.name,
        tracks=tuple(payload.tracks),
        intro=payload.intro,
        outro=payload.outro,
        iframe=iframe or None,
    )
