"""
TCX file adapters.

Decodes Garmin Training Center files (plain or gzip-compressed) into
Activity objects via the streaming decoder.
"""

import gzip
import io
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

from ridelog.config import DecoderSettings
from ridelog.models.activity import Activity
from ridelog.services.tcx_decoder import TcxDecoder
from ridelog.services.tcx_source import feed_tag_stream


logger = logging.getLogger(__name__)


class ActivityAdapter(Protocol):
    """Adapter interface for activity file sources."""

    name: str

    def can_parse(self, filepath: Path) -> bool:
        ...

    def parse(self, filepath: Path, settings: Optional[DecoderSettings] = None) -> list[Activity]:
        ...


class TcxAdapter:
    """Adapter for plain .tcx files."""

    name = "tcx"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.suffix.lower() == ".tcx"

    def parse(self, filepath: Path, settings: Optional[DecoderSettings] = None) -> list[Activity]:
        with open(filepath, "rb") as f:
            return decode_tcx_stream(f, settings, source_file=filepath)


class GzipTcxAdapter:
    """Adapter for .tcx.gz files as found in bulk exports."""

    name = "tcx_gz"

    def can_parse(self, filepath: Path) -> bool:
        return filepath.name.lower().endswith(".tcx.gz")

    def parse(self, filepath: Path, settings: Optional[DecoderSettings] = None) -> list[Activity]:
        with gzip.open(filepath, "rb") as f:
            return decode_tcx_stream(f, settings, source_file=filepath)


ADAPTERS: list[ActivityAdapter] = [
    TcxAdapter(),
    GzipTcxAdapter(),
]

FILE_PATTERNS = ("*.tcx", "*.tcx.gz")


def _select_adapter(filepath: Path) -> ActivityAdapter:
    for adapter in ADAPTERS:
        if adapter.can_parse(filepath):
            return adapter
    raise ValueError(f"No adapter available for file: {filepath}")


def decode_tcx_stream(
    stream: BinaryIO,
    settings: Optional[DecoderSettings] = None,
    source_file: Optional[Path] = None,
) -> list[Activity]:
    """
    Decode a TCX byte stream into activities.

    A document that breaks off part way keeps the activities decoded so far;
    the activity being decoded at the break is marked invalid.

    Raises:
        ValueError: the stream contains no activity at all
    """
    decoder = TcxDecoder(settings)
    try:
        feed_tag_stream(stream, decoder)
    except ET.ParseError as e:
        logger.error(f"Malformed TCX document {source_file or '<stream>'}: {e}")
        decoder.abort(f"Malformed document: {e}")

    activities = decoder.finish()
    if not activities:
        raise ValueError(f"No activities found in {source_file or 'TCX stream'}")

    for activity in activities:
        activity.source_file = source_file
        if not activity.is_valid:
            logger.warning(
                f"Invalid activity in {source_file or '<stream>'}: {'; '.join(activity.errors)}"
            )

    logger.debug(f"Decoded {len(activities)} activities from {source_file or '<stream>'}")
    return activities


def parse_tcx_bytes(
    data: bytes,
    settings: Optional[DecoderSettings] = None,
    source_file: Optional[Path] = None,
) -> list[Activity]:
    """Decode an in-memory TCX document."""
    return decode_tcx_stream(io.BytesIO(data), settings, source_file)


def parse_tcx_file(filepath: Path, settings: Optional[DecoderSettings] = None) -> list[Activity]:
    """
    Decode a TCX file (plain or gzip) into activities.
    """
    adapter = _select_adapter(filepath)
    return adapter.parse(filepath, settings)
