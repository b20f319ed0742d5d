import pytest

from feeds_checker.clients import FetchError
from feeds_checker.services.stat_prober import StatProber, parse_size_marker

from .conftest import make_stat

FEED = "http://feeds.test/vacancies.xml.gz"


@pytest.mark.parametrize(
    "stat, expected",
    [
        (b"size:100 bytes", "100"),
        (b"file: a.gz, size:12345 bytes, modified: today", "12345"),
        (b"size:1 bytes size:2 bytes", "1"),
        (b"size: 100 bytes", None),
        (b"size:100bytes", None),
        (b"size:abc bytes", None),
        (b"", None),
    ],
)
def test_parse_size_marker(stat, expected):
    assert parse_size_marker(stat) == expected


async def test_probe_reads_stat_sidecar(fetcher):
    fetcher.responses[f"{FEED}?stat"] = make_stat(100)

    probe = await StatProber(fetcher).probe(FEED)

    assert probe.size_marker == "100"
    assert probe.raw_stat == b"file: vacancies.xml.gz, size:100 bytes"
    assert fetcher.calls[f"{FEED}?stat"] == 1
    assert fetcher.calls[FEED] == 0


async def test_probe_transport_failure_is_unreachable(fetcher):
    fetcher.responses[f"{FEED}?stat"] = FetchError("connection refused")
    prober = StatProber(fetcher)

    assert await prober.probe(FEED) is None
    assert await prober.is_alive(FEED) is False


async def test_probe_without_size_pattern_is_unreachable(fetcher):
    fetcher.responses[f"{FEED}?stat"] = b"<html>maintenance</html>"

    assert await StatProber(fetcher).probe(FEED) is None


async def test_is_alive(fetcher):
    fetcher.responses[f"{FEED}?stat"] = make_stat(5)

    assert await StatProber(fetcher).is_alive(FEED) is True


async def test_raw_stat_is_kept_verbatim(fetcher):
    stat = "файл: вакансии.xml.gz, size:100 bytes".encode("cp1251")
    fetcher.responses[f"{FEED}?stat"] = stat

    probe = await StatProber(fetcher).probe(FEED)

    assert probe.raw_stat == stat
