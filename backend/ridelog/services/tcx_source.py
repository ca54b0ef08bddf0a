"""
Tag-stream source: drives a decoder from an XML byte stream.

The document is fed to ElementTree's pull parser in chunks and every
element-open, text and element-close event is forwarded to the handler in
document order. Elements are cleared as soon as they close, so memory stays
flat for long recordings.
"""

import xml.etree.ElementTree as ET
from typing import BinaryIO, Mapping, Protocol


DEFAULT_CHUNK_SIZE = 64 * 1024


class TagEventHandler(Protocol):
    """Receiver of tag-stream events (see TcxDecoder)."""

    def start_element(self, name: str, attrs: Mapping[str, str]) -> None:
        ...

    def characters(self, text: str) -> None:
        ...

    def end_element(self, name: str) -> None:
        ...


def feed_tag_stream(
    stream: BinaryIO,
    handler: TagEventHandler,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """
    Read the stream to the end and push its events into the handler.

    Raises:
        xml.etree.ElementTree.ParseError: the document is not well-formed;
            events before the error have already been delivered
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        parser.feed(chunk)
        _dispatch(parser, handler)

    parser.close()
    _dispatch(parser, handler)


def _dispatch(parser: ET.XMLPullParser, handler: TagEventHandler) -> None:
    for event, elem in parser.read_events():
        if event == "start":
            handler.start_element(elem.tag, elem.attrib)
            continue

        # Text is complete once the element closes; only leaves carry values
        if len(elem) == 0 and elem.text:
            handler.characters(elem.text)
        handler.end_element(elem.tag)
        elem.clear()
