"""Command line front-end: `hianime <command> [args]`."""

import sys
import logging
import argparse
from typing import List, Optional

from config_manager import get_config
from errors import ScraperError
from output import FORMATS, write_output
from scraper import HiAnimeScraper

__version__ = "1.0.0"

logger = logging.getLogger("hianime")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hianime",
        description="Scrape episode servers, stream links and search results from HiAnime."
    )
    parser.add_argument("--format", choices=FORMATS, default=None, help="Output format (default: json)")
    parser.add_argument("--output", default=None, help="Write output to this file instead of stdout")
    parser.add_argument("--verbose", action="store_true", help="Debug logging and pretty JSON")

    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.required = True

    serve = sub.add_parser("serve", help="Start the REST API server")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Port")

    servers = sub.add_parser("servers", help="List sub/dub servers of an episode")
    servers.add_argument("episode_id", help="Episode reference, e.g. one-piece-100::ep=2142")

    stream = sub.add_parser("stream", help="Resolve a playable stream link")
    stream.add_argument("episode_id", help="Episode reference, e.g. one-piece-100::ep=2142")
    stream.add_argument("server_type", choices=("sub", "dub"), help="Audio type")
    stream.add_argument("server_name", help="Server name, e.g. HD-1")

    episodes = sub.add_parser("episodes", help="List the episodes of an anime")
    episodes.add_argument("anime_id", help="Anime id, e.g. one-piece-100")

    search = sub.add_parser("search", help="Search anime by keyword")
    search.add_argument("keyword")
    search.add_argument("page", nargs="?", type=int, default=1)

    suggestions = sub.add_parser("suggestions", help="Search suggestions for a keyword")
    suggestions.add_argument("keyword")

    sub.add_parser("version", help="Print the version")
    return parser


def setup_logging(level_name: str, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()

    verbose = args.verbose or bool(config.get('output.verbose', False))
    fmt = args.format or config.get('output.format', 'json')
    output_file = args.output if args.output is not None else config.get('output.file', '')
    setup_logging(config.get('logging.level', 'INFO'), verbose)

    if args.command == "version":
        print(f"hianime {__version__}")
        return 0

    if args.command == "serve":
        # app baut beim Import Flask-App und Scraper auf
        import app as api
        api.run(host=args.host, port=args.port)
        return 0

    scraper = HiAnimeScraper(config)

    try:
        if args.command == "servers":
            data = scraper.servers(args.episode_id)
        elif args.command == "stream":
            data = scraper.stream_links(args.episode_id, args.server_type, args.server_name)
        elif args.command == "episodes":
            data = scraper.episodes(args.anime_id)
        elif args.command == "search":
            data = scraper.search(args.keyword, args.page)
        else:
            data = scraper.suggestions(args.keyword)
    except ScraperError as e:
        logger.error(f"{args.command} failed: {str(e)}")
        return 1

    try:
        write_output(data, fmt, output_file, verbose)
    except OSError as e:
        logger.error(f"Failed to write output: {str(e)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
