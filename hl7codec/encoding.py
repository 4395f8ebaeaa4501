"""
Character set detection for raw HL7 messages.

An HL7 message declares its own character set in MSH-18, so decoding is
done in two passes: resolve_encoding() scans the raw bytes of the header
line for the declared name, then decode_message() decodes the whole
buffer with it.
"""

import codecs
import logging
import re

from .constants import (
    CHARSET_TOKEN_INDEX,
    CR_BYTE,
    DEFAULT_ENCODING,
    FIELD_SEPARATOR,
    HEADER_SEGMENT,
    VT_BYTE,
)
from .exceptions import UnknownEncodingError

logger = logging.getLogger(__name__)

# HL7 table 0211 names mapped to Python codecs
HL7_CHARSETS = {
    "ASCII": "ascii",
    "ISO IR6": "ascii",
    "8859/1": "iso8859-1",
    "8859/2": "iso8859-2",
    "8859/3": "iso8859-3",
    "8859/4": "iso8859-4",
    "8859/5": "iso8859-5",
    "8859/6": "iso8859-6",
    "8859/7": "iso8859-7",
    "8859/8": "iso8859-8",
    "8859/9": "iso8859-9",
    "8859/15": "iso8859-15",
    "ISO IR100": "iso8859-1",
    "ISO IR87": "iso2022_jp",
    "ISO IR159": "iso2022_jp_2",
    "UTF-8": "utf-8",
    "UTF-16": "utf-16",
    "UTF-32": "utf-32",
    "GB 18030-2000": "gb18030",
    "KS X 1001": "euc_kr",
    "BIG-5": "big5",
}

# Some senders write "UNICODE UTF-8"; the transfer encoding follows the prefix
UNICODE_PREFIX = re.compile(r"^UNICODE\s*")


# Resolve Declared Encoding
def resolve_encoding(data: bytes, default: str = DEFAULT_ENCODING) -> str:
    """
    Find the character set a raw message declares in MSH-18.

    Only the first line is inspected. Tokens are counted from the end of
    the "MSH" prefix: token 0 is whatever sits before the first field
    separator, token 1 is MSH-2, and token 17 is MSH-18.

    Args:
        data: Raw message bytes, optionally starting with a UTF-8 byte order
            mark and an MLLP VT byte
        default: Encoding to keep when MSH-18 is absent or empty

    Returns:
        The declared encoding name, or default
    """
    start = len(codecs.BOM_UTF8) if data.startswith(codecs.BOM_UTF8) else 0
    if data.startswith(VT_BYTE, start):
        start += 1
    end = data.find(CR_BYTE)
    if end < 0:
        end = len(data)

    separator = _header_separator(data, start)
    position = start + len(HEADER_SEGMENT)
    index = 0

    while position <= end:
        boundary = data.find(separator, position, end)
        if boundary < 0:
            boundary = end

        if index == CHARSET_TOKEN_INDEX:
            declared = _charset_name(data[position:boundary])
            if declared:
                logger.debug("Message declares character set %r", declared)
                return declared
            break

        if boundary >= end:
            break
        position = boundary + 1
        index += 1

    return default


def _header_separator(data: bytes, start: int) -> bytes:
    """The byte following "MSH" is the field separator; pipe if there is none."""
    prefix_end = start + len(HEADER_SEGMENT)
    if data[start:prefix_end] == HEADER_SEGMENT.encode("ascii") and len(data) > prefix_end:
        return data[prefix_end:prefix_end + 1]
    return FIELD_SEPARATOR.encode("ascii")


def _charset_name(token: bytes) -> str:
    """
    Turn a raw MSH-18 token into a charset name.

    MSH-18 may repeat; the first repetition is the default character set
    of the message.
    """
    name = token.decode("ascii", errors="ignore")
    name = name.split("~", 1)[0]
    name = UNICODE_PREFIX.sub("", name.strip())
    return name.strip()


# Map HL7 charset names to Python codecs
def lookup_codec(charset: str) -> str:
    """
    Translate an HL7 character set name into a Python codec name.

    Names outside HL7 table 0211 are accepted when Python knows them
    (e.g. "latin-1" or "cp1252").

    Raises:
        UnknownEncodingError: If no codec matches
    """
    normalized = " ".join(charset.strip().upper().split())
    if normalized in HL7_CHARSETS:
        return HL7_CHARSETS[normalized]

    try:
        return codecs.lookup(charset.strip()).name
    except LookupError:
        raise UnknownEncodingError(charset)


# Decode Raw Message
def decode_message(data: bytes, charset: str) -> str:
    """
    Decode a complete raw message with an already resolved charset.

    Undecodable bytes are replaced rather than rejected so that a single
    bad byte does not hide the rest of the message. A UTF-8 byte order
    mark is dropped.
    """
    codec = lookup_codec(charset)
    if codec == "utf-8":
        codec = "utf-8-sig"
    return data.decode(codec, errors="replace")
