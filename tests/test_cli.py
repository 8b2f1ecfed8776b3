import sys
import os
import json
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import cli
from errors import AllStrategiesExhausted, TokenNotFound
from models import (
    AnimeItem,
    EpisodeInfo,
    EpisodesResponse,
    SearchResponse,
    ServerRef,
    ServersResponse,
    StreamDescriptor,
    StreamLink,
)
from output import render

SERVERS = ServersResponse(
    episode=2142,
    sub=[ServerRef("600001", "HD-1", "sub", 0)],
    dub=[ServerRef("600003", "HD-1", "dub", 0)],
)


def run_cli(argv, **scraper_methods):
    with patch.object(cli, 'HiAnimeScraper') as scraper_cls:
        scraper = scraper_cls.return_value
        for name, value in scraper_methods.items():
            method = getattr(scraper, name)
            if isinstance(value, Exception):
                method.side_effect = value
            else:
                method.return_value = value
        code = cli.main(argv)
    return code, scraper


def test_version(capsys):
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == f"hianime {cli.__version__}"


def test_servers_json(capsys):
    code, scraper = run_cli(["--format", "json", "servers", "one-piece-100::ep=2142"], servers=SERVERS)

    assert code == 0
    scraper.servers.assert_called_once_with("one-piece-100::ep=2142")
    assert json.loads(capsys.readouterr().out) == SERVERS.to_dict()


def test_stream_arguments(capsys):
    descriptor = StreamDescriptor(id="one-piece-100::ep=2142", type="dub", link=StreamLink("https://cdn/x.m3u8"),
                                  server="HD-1")
    code, scraper = run_cli(["--format", "json", "stream", "one-piece-100::ep=2142", "dub", "HD-1"],
                            stream_links=descriptor)

    assert code == 0
    scraper.stream_links.assert_called_once_with("one-piece-100::ep=2142", "dub", "HD-1")
    assert json.loads(capsys.readouterr().out)["link"]["file"] == "https://cdn/x.m3u8"


def test_search_default_page(capsys):
    code, scraper = run_cli(["--format", "json", "search", "one piece"], search=SearchResponse())
    assert code == 0
    scraper.search.assert_called_once_with("one piece", 1)


def test_error_exits_1(capsys):
    error = AllStrategiesExhausted(TokenNotFound("no token found"))
    code, _ = run_cli(["stream", "one-piece-100::ep=2142", "sub", "HD-1"], stream_links=error)
    assert code == 1
    assert capsys.readouterr().out == ""


def test_output_file(tmp_path):
    target = tmp_path / "servers.json"
    code, _ = run_cli(["--format", "json", "--output", str(target), "servers", "x::ep=1"], servers=SERVERS)
    assert code == 0
    assert json.loads(target.read_text(encoding="utf-8")) == SERVERS.to_dict()


class TestRender:
    def test_table_servers(self):
        lines = render(SERVERS, "table").splitlines()
        assert lines[0].split() == ["TYPE", "NAME", "ID", "INDEX"]
        assert lines[2].split() == ["sub", "HD-1", "600001", "0"]
        assert lines[3].split() == ["dub", "HD-1", "600003", "0"]

    def test_csv_episodes(self):
        episodes = EpisodesResponse([EpisodeInfo(id="op::ep=1", title="Romance Dawn", episode=1, is_filler=True)])
        assert render(episodes, "csv").splitlines() == [
            "Episode,Title,Id,Filler",
            "1,Romance Dawn,op::ep=1,Yes",
        ]

    def test_csv_search(self):
        search = SearchResponse([AnimeItem(id="one-piece-100", title="One Piece", type="TV", sub=1122, dub=1085)])
        assert render(search, "csv").splitlines()[1] == "1,One Piece,one-piece-100,TV,1122"

    def test_stream_table_falls_back_to_json(self):
        descriptor = StreamDescriptor(id="x::ep=1", type="sub", link=StreamLink("f"), server="HD-1")
        assert json.loads(render(descriptor, "table")) == descriptor.to_dict()

    def test_verbose_json_is_indented(self):
        assert "\n  " in render(SERVERS, "json", verbose=True)
        assert "\n" not in render(SERVERS, "json")
