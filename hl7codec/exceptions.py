"""
Custom exceptions for HL7 message codec operations.

Parse errors carry their location inside the message (line number,
offending line and the whole decoded message) so callers can render
diagnostics without parsing again.
"""


# Base Exception
class HL7Error(Exception):
    """Base exception for everything raised by hl7codec."""


# Invalid Argument Error
class InvalidArgumentError(HL7Error, ValueError):
    """Raised when a call receives input of the wrong shape."""


# Unsupported Version Error
class UnsupportedVersionError(InvalidArgumentError):
    """Raised when a message version is not one of the supported revisions."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Unknown HL7 version ({version})")


# Parse Error
class HL7ParseError(HL7Error):
    """Base exception for all HL7 parsing errors."""

    def __init__(
        self,
        message: str,
        segment: str = None,
        field_index: int = None,
        line_number: int = None,
        line_contents: str = None,
        message_contents: str = None,
    ):
        self.reason = message
        self.segment = segment
        self.field_index = field_index
        self.line_number = line_number
        self.line_contents = line_contents
        self.message_contents = message_contents

        details = []
        if segment:
            details.append(f"segment={segment}")
        if field_index is not None:
            details.append(f"field={field_index}")
        if line_number is not None:
            details.append(f"line={line_number}")

        full_message = message
        if details:
            full_message = f"{message} [{', '.join(details)}]"

        super().__init__(full_message)


# Message Structure Error
class MessageStructureError(HL7ParseError):
    """Raised when a message does not begin with the MSH header segment."""


# Segment Parse Error
class SegmentParseError(HL7ParseError):
    """Raised when a single segment line cannot be parsed."""


# Unknown Encoding Error
class UnknownEncodingError(HL7ParseError):
    """Raised when a declared character set has no matching codec."""

    def __init__(self, charset: str):
        self.charset = charset
        super().__init__(f"Unknown character set '{charset}'", segment="MSH", field_index=18)


# Invalid Timestamp Error
class InvalidTimestampError(HL7ParseError):
    """Raised when an HL7 timestamp cannot be parsed."""

    def __init__(self, value: str, reason: str = None):
        self.value = value
        msg = f"Invalid HL7 timestamp: '{value}'"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


# File Read Error
class FileReadError(HL7ParseError):
    """Raised when the input file cannot be read."""

    def __init__(self, filepath: str, reason: str):
        self.filepath = filepath
        super().__init__(f"Cannot read file '{filepath}': {reason}")
        self.reason = reason
