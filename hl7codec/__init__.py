"""
HL7 v2 Message Codec

Parses raw HL7 v2.x messages (bytes or text, optionally MLLP-framed)
into ordered segments, honoring the character set declared in MSH-18,
and serializes them back to wire format.
"""

from .config import FieldDictionary, MessageConfig
from .constants import DEFAULT_VERSION, SUPPORTED_VERSIONS
from .encoding import decode_message, resolve_encoding
from .exceptions import (
    HL7Error,
    HL7ParseError,
    InvalidArgumentError,
    MessageStructureError,
    SegmentParseError,
    UnknownEncodingError,
    UnsupportedVersionError,
)
from .message import HL7Message
from .segment import Delimiters, Segment

__version__ = "1.0.0"
__author__ = "Healthcare Integration Team"

__all__ = [
    "DEFAULT_VERSION",
    "SUPPORTED_VERSIONS",
    "Delimiters",
    "FieldDictionary",
    "HL7Error",
    "HL7Message",
    "HL7ParseError",
    "InvalidArgumentError",
    "MessageConfig",
    "MessageStructureError",
    "Segment",
    "SegmentParseError",
    "UnknownEncodingError",
    "UnsupportedVersionError",
    "decode_message",
    "resolve_encoding",
]
