"""
HL7 segment parsing and serialization.

A Segment holds the fields of one message line. Fields are kept as the
raw strings found on the wire so that serializing an untouched segment
gives back exactly the line it was parsed from.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import MessageConfig
from .constants import DEFAULT_VERSION, HEADER_SEGMENT, VERSION_FIELD_INDEX
from .datatypes import encode_value, parse_hl7_timestamp
from .exceptions import SegmentParseError

logger = logging.getLogger(__name__)

# Default HL7 delimiters (can be overridden from MSH)
DEFAULT_FIELD_SEPARATOR = "|"
DEFAULT_COMPONENT_SEPARATOR = "^"
DEFAULT_REPETITION_SEPARATOR = "~"
DEFAULT_ESCAPE_CHARACTER = "\\"
DEFAULT_SUBCOMPONENT_SEPARATOR = "&"

SEGMENT_TYPE_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{2}$")


# Delimiters Dataclass
@dataclass(frozen=True)
class Delimiters:
    """
    HL7 message delimiters extracted from MSH segment.

    The MSH segment always starts with "MSH|" and the encoding characters
    follow in position MSH-2, defining how the rest of the message is parsed.
    Instances are frozen: every segment of a parsed message shares the
    delimiters read from its header.
    """

    field: str = DEFAULT_FIELD_SEPARATOR
    component: str = DEFAULT_COMPONENT_SEPARATOR
    repetition: str = DEFAULT_REPETITION_SEPARATOR
    escape: str = DEFAULT_ESCAPE_CHARACTER
    subcomponent: str = DEFAULT_SUBCOMPONENT_SEPARATOR

    @property
    def encoding_characters(self) -> str:
        return self.component + self.repetition + self.escape + self.subcomponent

    def validate(self) -> None:
        """
        Check that the delimiters are usable.

        HL7 delimiters should be non-alphanumeric special characters
        and should not conflict with each other.

        Raises:
            SegmentParseError: If a delimiter is invalid or reused
        """
        delimiters = [
            ("field", self.field),
            ("component", self.component),
            ("repetition", self.repetition),
            ("escape", self.escape),
            ("subcomponent", self.subcomponent),
        ]

        chars_used = set()
        for name, char in delimiters:
            if not char or char.isalnum() or char.isspace():
                raise SegmentParseError(
                    f"Invalid {name} delimiter '{char}': must be a non-alphanumeric, non-whitespace character",
                    segment=HEADER_SEGMENT,
                )
            if char in chars_used:
                raise SegmentParseError(
                    f"Conflicting delimiter: '{char}' used for multiple purposes",
                    segment=HEADER_SEGMENT,
                )
            chars_used.add(char)


# Segment Class
class Segment:
    """
    One line of an HL7 message.

    Field indices follow HL7 numbering: fields[0] is the segment type and
    fields[1] is the first field. For MSH, fields[1] is the field
    separator itself and fields[2] holds the encoding characters, so
    MSH-12 is fields[12] as in the HL7 documentation.

    Usage:
        segment = Segment()
        segment.parse("PID|1||P12345^^^HOSP||Doe^John")
        segment.get_component(5, 1)  # "John"
    """

    def __init__(
        self,
        message=None,
        config: MessageConfig = None,
        delimiters: Delimiters = None,
    ):
        self.message = message
        if config is None:
            config = message.config if message is not None else MessageConfig()
        self.config = config
        if delimiters is None:
            delimiters = message.delimiters if message is not None else Delimiters()
        self.delimiters = delimiters
        self.fields: List[Any] = []
        self.warnings: List[str] = []

    def __repr__(self) -> str:
        return f"<Segment {self.segment_type!r} fields={len(self.fields) - 1}>"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Segment):
            return NotImplemented
        return self.to_hl7() == other.to_hl7()

    # Segments are mutable
    __hash__ = None

    @property
    def segment_type(self) -> str:
        return self.fields[0] if self.fields else ""

    @property
    def version(self) -> str:
        if self.message is not None:
            return self.message.version
        return DEFAULT_VERSION

    def parse(self, raw_text: str) -> "Segment":
        """
        Parse a single segment line into this segment.

        Args:
            raw_text: One segment line without its terminator

        Returns:
            The segment itself

        Raises:
            SegmentParseError: If the line is not a valid segment
        """
        segment_type = raw_text[:3]
        if not SEGMENT_TYPE_PATTERN.match(segment_type):
            raise SegmentParseError(f"Invalid segment type '{segment_type}'")

        if segment_type == HEADER_SEGMENT:
            fields = self._parse_msh_segment(raw_text)
        else:
            if len(raw_text) > 3 and raw_text[3] != self.delimiters.field:
                raise SegmentParseError(
                    f"Segment type must be followed by '{self.delimiters.field}'",
                    segment=segment_type,
                )
            fields = raw_text.split(self.delimiters.field)

        self.fields = fields
        self.warnings = []
        self._check_dictionary()
        return self

    def _parse_msh_segment(self, raw_text: str) -> List[str]:
        """
        Parse MSH segment with special handling for field separator.

        MSH is unique because the field separator itself occupies MSH-1,
        so we need to handle it differently to maintain consistent
        field indexing.
        """
        if len(raw_text) < 5:
            raise SegmentParseError(
                "MSH segment missing field separator or encoding characters",
                segment=HEADER_SEGMENT,
            )

        sep = raw_text[3]
        parts = raw_text[4:].split(sep)
        encoding = parts[0]

        # Missing encoding characters keep their defaults
        defaults = Delimiters()
        chars = encoding + defaults.encoding_characters[len(encoding):]
        delimiters = Delimiters(
            field=sep,
            component=chars[0],
            repetition=chars[1],
            escape=chars[2],
            subcomponent=chars[3],
        )
        delimiters.validate()

        self.delimiters = delimiters
        return [HEADER_SEGMENT, sep] + parts

    def _check_dictionary(self) -> None:
        """
        Compare the field count with the custom dictionary, if it defines this segment.

        With ignore_parsing_errors the problem is recorded as a warning.
        """
        dictionary = self.config.dictionary_for(self.version)
        if dictionary is None:
            return

        names = dictionary.get_definition(self.segment_type)
        if names is None:
            return

        field_count = len(self.fields) - 1
        if field_count <= len(names):
            return

        reason = f"{self.segment_type} has {field_count} fields, dictionary defines {len(names)}"
        if not self.config.ignore_parsing_errors:
            raise SegmentParseError(
                reason, segment=self.segment_type, field_index=len(names) + 1
            )

        logger.warning("Ignoring segment problem: %s", reason)
        self.warnings.append(reason)

    # Field access
    def get_field(self, index: int, default: str = "") -> str:
        """
        Safely retrieve a field by index.

        Args:
            index: HL7 field number (0 is the segment type)
            default: Value to return if field doesn't exist

        Returns:
            Field value as HL7 text, or default
        """
        if index < 0 or index >= len(self.fields):
            return default
        return self._render(self.fields[index]) or default

    def get_component(
        self,
        field_index: int,
        component_index: int,
        default: str = "",
    ) -> str:
        """
        Extract a specific component from a field.

        Args:
            field_index: HL7 field number
            component_index: 0-based component index within the field
            default: Value to return if component doesn't exist

        Returns:
            Component value or default
        """
        field_value = self.get_field(field_index)
        if not field_value:
            return default

        components = field_value.split(self.delimiters.component)
        if component_index < 0 or component_index >= len(components):
            return default
        return components[component_index] or default

    def get_subcomponent(
        self,
        field_index: int,
        component_index: int,
        subcomponent_index: int,
        default: str = "",
    ) -> str:
        component = self.get_component(field_index, component_index)
        if not component:
            return default

        subcomponents = component.split(self.delimiters.subcomponent)
        if subcomponent_index < 0 or subcomponent_index >= len(subcomponents):
            return default
        return subcomponents[subcomponent_index] or default

    def get_timestamp(self, index: int) -> Optional[str]:
        """Return a TS field as ISO 8601, or None when the field is empty."""
        return parse_hl7_timestamp(self.get_component(index, 0))

    def set_field(self, index: int, value: Any) -> None:
        """
        Set a field, padding the segment with empty fields as needed.

        Values other than strings are kept as given and rendered when the
        segment is serialized.
        """
        if index < 1:
            raise IndexError(f"Field index must be 1 or greater, got {index}")
        if self.segment_type == HEADER_SEGMENT and index <= 2:
            raise IndexError("MSH-1 and MSH-2 are derived from the delimiters")

        while len(self.fields) <= index:
            self.fields.append("")
        self.fields[index] = value

    def get_named_field(self, name: str, default: str = "") -> str:
        index = self._named_index(name)
        return self.get_field(index, default)

    def set_named_field(self, name: str, value: Any) -> None:
        self.set_field(self._named_index(name), value)

    def _named_index(self, name: str) -> int:
        index = self.config.field_index(self.segment_type, name, self.version)
        if index is None:
            raise KeyError(f"{self.segment_type} has no field named '{name}'")
        return index

    # Header only
    @property
    def version_id(self) -> str:
        """MSH-12 version identifier (first component)."""
        self._require_header("version_id")
        return self.get_component(VERSION_FIELD_INDEX, 0)

    @version_id.setter
    def version_id(self, value: str) -> None:
        self._require_header("version_id")
        current = self.get_field(VERSION_FIELD_INDEX)
        components = current.split(self.delimiters.component) if current else [""]
        components[0] = value
        self.set_field(VERSION_FIELD_INDEX, self.delimiters.component.join(components))

    def _require_header(self, attribute: str) -> None:
        if self.segment_type != HEADER_SEGMENT:
            raise AttributeError(f"{attribute} is only available on {HEADER_SEGMENT}")

    # Serialization
    def _render(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        if self.config.encode_hl7_data_types:
            return encode_value(value, self.delimiters.component)
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return self.delimiters.component.join(self._render(v) for v in value)
        return str(value)

    def to_hl7(self) -> str:
        """Render the segment as one line of HL7 text, without terminator."""
        if not self.fields:
            return ""

        if self.segment_type == HEADER_SEGMENT:
            # fields[1] is the separator itself and is not joined
            sep = self.delimiters.field
            return HEADER_SEGMENT + sep + sep.join(self._render(value) for value in self.fields[2:])

        return self.delimiters.field.join(self._render(value) for value in self.fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary of HL7 field number to text, skipping empty fields."""
        result = {"segment_type": self.segment_type, "fields": {}}
        for index in range(1, len(self.fields)):
            value = self.get_field(index)
            if value:
                result["fields"][str(index)] = value
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
