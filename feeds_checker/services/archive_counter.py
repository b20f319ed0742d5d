import asyncio
import zlib
import xml.etree.ElementTree as ET
from contextlib import aclosing
from logging import getLogger
from typing import AsyncIterator, List

from feeds_checker.clients import ResourceFetcher
from feeds_checker.config import ITEM_ELEMENT

logger = getLogger(__name__)

GZIP_WBITS = 16 + zlib.MAX_WBITS


class ArchiveDecodeError(Exception):
    """The archive is not valid gzip or does not hold well-formed XML."""


def local_name(tag: str) -> str:
    # ElementTree reports namespaced tags as "{uri}name"
    return tag.rsplit("}", 1)[-1]


class _StartTags:
    """Parser target that only remembers start-tag names; no tree is built."""

    def __init__(self):
        self.pending: List[str] = []

    def start(self, tag, attrib):
        self.pending.append(local_name(tag))

    def close(self):
        return None


class ArchiveDecoder:
    """
    Incremental gzip + XML decoder. Concatenated gzip members are decoded as
    a single stream. Calls are blocking and must not overlap.
    """

    def __init__(self):
        self._decompressor = zlib.decompressobj(GZIP_WBITS)
        self._target = _StartTags()
        self._parser = ET.XMLParser(target=self._target)

    def feed(self, chunk: bytes) -> List[str]:
        """Decode one compressed chunk and return the start tags it completed."""
        try:
            while chunk:
                if self._decompressor.eof:
                    self._decompressor = zlib.decompressobj(GZIP_WBITS)
                self._parser.feed(self._decompressor.decompress(chunk))
                chunk = self._decompressor.unused_data if self._decompressor.eof else b""
        except zlib.error as e:
            raise ArchiveDecodeError(f"invalid gzip data: {e}") from e
        except ET.ParseError as e:
            raise ArchiveDecodeError(f"invalid XML: {e}") from e
        return self._drain()

    def close(self) -> List[str]:
        """Finish the document; raises if the stream or the XML is incomplete."""
        if not self._decompressor.eof:
            raise ArchiveDecodeError("unexpected end of gzip stream")
        try:
            self._parser.close()
        except ET.ParseError as e:
            raise ArchiveDecodeError(f"invalid XML: {e}") from e
        return self._drain()

    def _drain(self) -> List[str]:
        tags = self._target.pending
        self._target.pending = []
        return tags


async def decode_tag_batches(chunks: AsyncIterator[bytes]) -> AsyncIterator[List[str]]:
    """
    Yield, chunk by chunk, the local names of the start tags of a
    gzip-compressed XML stream.
    Decoding runs in a worker thread so the event loop keeps serving requests.
    The chunk source is closed whether decoding finishes or fails.
    :raises ArchiveDecodeError: On a gzip or XML error, or a truncated stream.
    """
    decoder = ArchiveDecoder()
    async with aclosing(chunks):
        async for chunk in chunks:
            yield await asyncio.to_thread(decoder.feed, chunk)

    yield decoder.close()


class ArchiveCounter:
    """
    Counts item elements inside a feed's compressed XML archive.
    """

    def __init__(self, fetcher: ResourceFetcher, item_element: str = ITEM_ELEMENT):
        self.fetcher = fetcher
        self.item_element = item_element

    async def count(self, url: str) -> int:
        """
        :return: Number of start tags whose local name is the item element.
        :raises FetchError: If the archive can't be downloaded.
        :raises ArchiveDecodeError: If the archive can't be decoded.
        """
        count = 0
        async with aclosing(decode_tag_batches(self.fetcher.stream(url))) as batches:
            async for tags in batches:
                count += tags.count(self.item_element)
        return count
