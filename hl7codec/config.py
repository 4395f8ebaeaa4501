"""
Configuration shared by a message and the segments it creates.

A message captures one MessageConfig at construction and hands the same
instance to every Segment it builds, so segment-level behavior never
depends on anything the message does not pass down explicitly.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .exceptions import InvalidArgumentError


# Field Dictionary
@dataclass(frozen=True)
class FieldDictionary:
    """
    Field names per segment type for one HL7 version.

    A dictionary with version=None applies to every version. Segment
    definitions list field names in order, starting at field 1.

    Example:
        FieldDictionary(
            segments={"ZPI": ["SetId", "PetName", "PetSpecies"]},
            version="2.5",
        )
    """

    segments: Mapping[str, Sequence[str]] = field(default_factory=dict)
    version: Optional[str] = None

    def applies_to(self, version: str) -> bool:
        return self.version is None or self.version == version

    def get_definition(self, segment_type: str) -> Optional[List[str]]:
        """Return the ordered field names of a segment, or None if undefined."""
        names = self.segments.get(segment_type)
        if names is None:
            return None
        return list(names)

    def field_index(self, segment_type: str, name: str) -> Optional[int]:
        """
        Look up the 1-based index of a named field.

        Returns:
            Field index or None if the segment or name is unknown
        """
        names = self.get_definition(segment_type)
        if not names or name not in names:
            return None
        return names.index(name) + 1


# Header field names shared by all supported versions
MSH_FIELD_NAMES = [
    "FieldSeparator",
    "EncodingCharacters",
    "SendingApplication",
    "SendingFacility",
    "ReceivingApplication",
    "ReceivingFacility",
    "DateTimeOfMessage",
    "Security",
    "MessageType",
    "MessageControlId",
    "ProcessingId",
    "VersionId",
    "SequenceNumber",
    "ContinuationPointer",
    "AcceptAcknowledgmentType",
    "ApplicationAcknowledgmentType",
    "CountryCode",
    "CharacterSet",
    "PrincipalLanguageOfMessage",
    "AlternateCharacterSetHandlingScheme",
    "MessageProfileIdentifier",
]

BUILTIN_DICTIONARY = FieldDictionary(segments={"MSH": MSH_FIELD_NAMES})


# Message Configuration
@dataclass(frozen=True)
class MessageConfig:
    """
    Options captured by a message and forwarded to its segments.

    Attributes:
        custom_dict: Field dictionary checked by segments during parsing
        ignore_parsing_errors: Record segment problems as warnings instead of raising
        encode_hl7_data_types: Render non-string field values as HL7 primitives
    """

    custom_dict: Optional[FieldDictionary] = None
    ignore_parsing_errors: bool = False
    encode_hl7_data_types: bool = False

    def __post_init__(self):
        if self.custom_dict is not None and not isinstance(self.custom_dict, FieldDictionary):
            raise InvalidArgumentError(
                f"custom_dict must be a FieldDictionary, got {type(self.custom_dict).__name__}"
            )

    def dictionary_for(self, version: str) -> Optional[FieldDictionary]:
        """Return the custom dictionary if it covers the given version."""
        if self.custom_dict is not None and self.custom_dict.applies_to(version):
            return self.custom_dict
        return None

    def field_index(self, segment_type: str, name: str, version: str) -> Optional[int]:
        """Resolve a field name via the custom dictionary, then the built-in one."""
        dictionary = self.dictionary_for(version)
        if dictionary is not None:
            index = dictionary.field_index(segment_type, name)
            if index is not None:
                return index
        return BUILTIN_DICTIONARY.field_index(segment_type, name)

