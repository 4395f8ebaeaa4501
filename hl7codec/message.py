"""
HL7 message codec.

This module turns raw HL7 input (bytes or text, with or without MLLP
framing) into an ordered list of segments and renders that list back to
wire format.
"""

import json
import logging
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional, Union

from .config import FieldDictionary, MessageConfig
from .constants import (
    BOM,
    CR,
    DEFAULT_ENCODING,
    DEFAULT_VERSION,
    FS,
    HEADER_SEGMENT,
    SUPPORTED_VERSIONS,
    VT,
)
from .encoding import decode_message, resolve_encoding
from .exceptions import (
    HL7ParseError,
    InvalidArgumentError,
    MessageStructureError,
    SegmentParseError,
    UnsupportedVersionError,
)
from .segment import Delimiters, Segment

logger = logging.getLogger(__name__)


# Strip MLLP framing
def strip_framing(text: str) -> str:
    """
    Remove MLLP framing characters from a decoded message.

    A leading byte order mark, a leading VT and a trailing FS+CR are
    removed. Anything after a remaining FS is dropped as well: a stray
    end-of-block marks the end of the message and whatever follows it is
    treated as trailing garbage, not as an error.
    """
    if text.startswith(BOM):
        text = text[1:]

    if text.startswith(VT):
        text = text[1:]

    if text.endswith(FS + CR):
        text = text[:-2]

    end = text.find(FS)
    if end >= 0:
        text = text[:end]

    return text


# HL7 Message Class
class HL7Message:
    """
    An HL7 v2.x message as an ordered list of segments.

    The message owns its segments and the configuration they are parsed
    with. Parsing replaces the segment list; serializing writes the
    message version into MSH-12 first so the two never disagree.

    Usage:
        message = HL7Message.from_hl7(raw_bytes)
        pid = message.get_segment("PID")
        print(pid.get_component(5, 0))
        wire_text = message.to_hl7()
    """

    def __init__(
        self,
        version: str = None,
        custom_dict: FieldDictionary = None,
        ignore_parsing_errors: bool = False,
        encode_hl7_data_types: bool = False,
        config: MessageConfig = None,
    ):
        """
        Initialize an empty message.

        Args:
            version: HL7 version; None or "" selects the default version
            custom_dict: Field dictionary forwarded to every segment
            ignore_parsing_errors: Let segments record problems as warnings
            encode_hl7_data_types: Render typed field values as HL7 primitives
            config: Ready-made configuration; replaces the three options above

        Raises:
            InvalidArgumentError: If custom_dict or config has the wrong type
            UnsupportedVersionError: If version is not a supported HL7 version
        """
        if config is None:
            config = MessageConfig(
                custom_dict=custom_dict,
                ignore_parsing_errors=ignore_parsing_errors,
                encode_hl7_data_types=encode_hl7_data_types,
            )
        elif not isinstance(config, MessageConfig):
            raise InvalidArgumentError("config must be a MessageConfig")

        self.version = version
        self.config = config
        self.delimiters = Delimiters()
        self.encoding: Optional[str] = None
        self._segments: List[Segment] = []

    def __repr__(self) -> str:
        types = ",".join(s.segment_type for s in self._segments)
        return f"<HL7Message version={self.version!r} segments=[{types}]>"

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    @property
    def version(self) -> str:
        return self._version

    @version.setter
    def version(self, value: str) -> None:
        version = value or DEFAULT_VERSION
        if version not in SUPPORTED_VERSIONS:
            raise UnsupportedVersionError(version)
        self._version = version

    @property
    def segments(self) -> List[Segment]:
        return self._segments

    @property
    def msh(self) -> Optional[Segment]:
        return self.get_segment(HEADER_SEGMENT)

    @property
    def warnings(self) -> List[str]:
        """Segment problems tolerated because of ignore_parsing_errors."""
        return [w for segment in self._segments for w in segment.warnings]

    @property
    def as_hl7(self) -> str:
        return self.to_hl7()

    @as_hl7.setter
    def as_hl7(self, value: Union[str, bytes]) -> None:
        self.parse(value)

    # Segment management
    def add(self, segment: Union[Segment, str]) -> Segment:
        """
        Append a segment to the end of the message.

        Args:
            segment: A Segment built elsewhere, or a segment type such as
                "OBX" for a new empty segment bound to this message

        Returns:
            The appended segment
        """
        if isinstance(segment, str):
            segment_type = segment
            segment = Segment(self, self.config)
            if segment_type == HEADER_SEGMENT:
                segment_type += self.delimiters.field + self.delimiters.encoding_characters
            segment.parse(segment_type)
        elif not isinstance(segment, Segment):
            raise InvalidArgumentError("add() expects a Segment or a segment type")

        self._segments.append(segment)
        return segment

    def get_segment(self, segment_type: str, index: int = 0) -> Optional[Segment]:
        """
        Find the n-th segment of a given type.

        Args:
            segment_type: Segment type, e.g. "OBX"
            index: 0-based occurrence among segments of that type

        Returns:
            The matching segment or None
        """
        occurrence = 0
        for segment in self._segments:
            if segment.segment_type != segment_type:
                continue
            if occurrence == index:
                return segment
            occurrence += 1
        return None

    def get_segments(self, segment_type: str) -> List[Segment]:
        return [s for s in self._segments if s.segment_type == segment_type]

    # Parsing
    def parse(
        self,
        data: Union[str, bytes, bytearray],
        encoding: str = None,
        custom_dict: FieldDictionary = None,
    ) -> "HL7Message":
        """
        Parse raw HL7 input into this message, replacing its segments.

        Bytes are decoded with the character set declared in MSH-18,
        falling back to encoding (UTF-8 if not given). Text is used as is.

        Args:
            data: Raw message as bytes or str
            encoding: Fallback character set for bytes input
            custom_dict: Dictionary to use instead of the configured one

        Returns:
            The message itself

        Raises:
            InvalidArgumentError: If data is neither text nor bytes, or
                custom_dict is not a FieldDictionary
            MessageStructureError: If the message does not start with MSH
            SegmentParseError: If a segment line cannot be parsed
        """
        config = self.config
        if custom_dict is not None:
            config = replace(config, custom_dict=custom_dict)

        charset = None
        if isinstance(data, (bytes, bytearray)):
            raw = bytes(data)
            charset = resolve_encoding(raw, encoding or DEFAULT_ENCODING)
            text = decode_message(raw, charset)
        elif isinstance(data, str):
            text = data
        else:
            raise InvalidArgumentError("You must provide str or bytes argument")

        text = strip_framing(text)
        if not text.startswith(HEADER_SEGMENT):
            first_line = text.split(CR, 1)[0]
            raise MessageStructureError(
                f"Message must start with ({HEADER_SEGMENT}) segment",
                line_number=1,
                line_contents=first_line,
                message_contents=text,
            )

        segments = []
        delimiters = Delimiters()
        for line_number, line in enumerate(text.split(CR), 1):
            if not line:
                continue

            segment = Segment(self, config, delimiters)
            try:
                segment.parse(line)
            except HL7ParseError as e:
                raise SegmentParseError(
                    e.reason,
                    segment=e.segment or line[:3],
                    field_index=e.field_index,
                    line_number=line_number,
                    line_contents=line,
                    message_contents=text,
                ) from e
            except Exception as e:
                raise SegmentParseError(
                    str(e) or type(e).__name__,
                    segment=line[:3],
                    line_number=line_number,
                    line_contents=line,
                    message_contents=text,
                ) from e

            if segment.segment_type == HEADER_SEGMENT and not segments:
                delimiters = segment.delimiters
            segments.append(segment)

        self._segments = segments
        self.delimiters = delimiters
        self.encoding = charset
        logger.debug(
            "Parsed %d segments (charset=%s)", len(segments), charset or "text input"
        )
        return self

    @staticmethod
    def from_hl7(
        data: Union[str, bytes, bytearray],
        version: str = None,
        encoding: str = None,
        **options,
    ) -> "HL7Message":
        """
        Build a message and parse data into it.

        Args:
            data: Raw message as bytes or str
            version: Message version
            encoding: Fallback character set for bytes input
            **options: Any other HL7Message constructor argument

        Returns:
            The parsed message
        """
        message = HL7Message(version=version, **options)
        return message.parse(data, encoding=encoding)

    # Serialization
    def to_hl7(self) -> str:
        """
        Render the message in wire format.

        Every segment is followed by a carriage return, including the last.
        No MLLP framing is added.
        """
        msh = self.msh
        if msh is not None:
            msh.version_id = self.version

        return "".join(segment.to_hl7() + CR for segment in self._segments)

    def to_dict(self) -> Dict[str, Any]:
        """Summarize the message for JSON output."""
        result = {
            "version": self.version,
            "segments": [segment.to_dict() for segment in self._segments],
        }
        if self.encoding:
            result["encoding"] = self.encoding
        msh = self.msh
        if msh is not None:
            result["message_type"] = msh.get_field(9)
            result["message_control_id"] = msh.get_field(10)
        return result

    def to_json(self, indent: int = 2) -> str:
        """Serialize the message summary to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
