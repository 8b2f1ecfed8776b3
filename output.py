"""Renders scraper results for the CLI as JSON, an aligned table or CSV."""

import io
import csv
import json
import logging
from typing import Any, List, Optional, Sequence

from models import EpisodesResponse, SearchResponse, ServersResponse

logger = logging.getLogger(__name__)

FORMATS = ("json", "table", "csv")


def _rows(data: Any) -> Optional[List[Sequence[Any]]]:
    """Header row plus data rows, or None when the type has no tabular form."""
    if isinstance(data, ServersResponse):
        rows: List[Sequence[Any]] = [("TYPE", "NAME", "ID", "INDEX")]
        for server in list(data.sub) + list(data.dub):
            rows.append((server.type, server.name, server.id, server.index))
        return rows
    if isinstance(data, EpisodesResponse):
        rows = [("EPISODE", "TITLE", "ID", "FILLER")]
        for ep in data.episodes:
            rows.append((ep.episode, ep.title, ep.id, "Yes" if ep.is_filler else "No"))
        return rows
    if isinstance(data, SearchResponse):
        rows = [("RANK", "TITLE", "ID", "TYPE", "EPISODES")]
        for rank, item in enumerate(data.results, start=1):
            rows.append((rank, item.title, item.id, item.type or "", max(item.sub, item.dub)))
        return rows
    return None


def to_json(data: Any, pretty: bool = False) -> str:
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, ensure_ascii=False)


def to_table(data: Any) -> str:
    rows = _rows(data)
    if rows is None:
        # Streams etc. haben keine Tabellenform
        return to_json(data, pretty=True)

    cells = [[str(value) for value in row] for row in rows]
    widths = [max(len(row[i]) for row in cells) for i in range(len(cells[0]))]
    lines = ["  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells[0])).rstrip()]
    lines.append("  ".join("-" * len(header) for header in cells[0]))
    for row in cells[1:]:
        lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip())
    return "\n".join(lines)


def to_csv(data: Any) -> str:
    rows = _rows(data)
    if rows is None:
        return to_json(data)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    # CSV-Header in Title-Case, wie in Tabellenkalkulationen üblich
    writer.writerow([str(header).title() for header in rows[0]])
    writer.writerows(rows[1:])
    return buffer.getvalue().rstrip("\n")


def render(data: Any, fmt: str = "json", verbose: bool = False) -> str:
    fmt = (fmt or "json").lower()
    if fmt == "table":
        return to_table(data)
    if fmt == "csv":
        return to_csv(data)
    return to_json(data, pretty=verbose)


def write_output(data: Any, fmt: str = "json", output_file: str = "", verbose: bool = False) -> None:
    """Print the rendered data, or write it to `output_file` when one is given."""
    text = render(data, fmt, verbose)
    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        logger.info(f"Output written to {output_file}")
    else:
        print(text)
