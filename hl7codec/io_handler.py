"""
File I/O operations for HL7 message processing.

Files are read as bytes so that each message can be decoded with the
character set it declares, not with a guess made for the whole file.
"""

import codecs
import json
import logging
from pathlib import Path
from typing import Iterator, List, Union

from .constants import CR_BYTE, FS_BYTE, HEADER_SEGMENT
from .exceptions import FileReadError
from .message import HL7Message

logger = logging.getLogger(__name__)

HEADER_BYTES = HEADER_SEGMENT.encode("ascii")


# Read HL7 File
def read_hl7_bytes(filepath: Union[str, Path]) -> bytes:
    """
    Read an HL7 file from disk without decoding it.

    Args:
        filepath: Path to the HL7 file

    Returns:
        File content as bytes

    Raises:
        FileReadError: If file cannot be read
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileReadError(str(filepath), "file does not exist")

    if not filepath.is_file():
        raise FileReadError(str(filepath), "path is not a file")

    try:
        return filepath.read_bytes()
    except OSError as e:
        raise FileReadError(str(filepath), str(e))


# HL7 Message Splitter
def split_hl7_messages(content: bytes) -> List[bytes]:
    """
    Split file content containing multiple HL7 messages.

    Line endings are normalized to CR, the HL7 segment terminator. A new
    message starts at every line beginning with MSH. Whitespace and the
    MLLP start-of-block byte in front of MSH are removed; every other
    segment line is kept byte for byte, since trailing spaces may belong
    to a field. Blank lines and lines holding only an end-of-block byte
    are dropped, as is a UTF-8 byte order mark at the start of the file.

    Args:
        content: File content potentially containing multiple messages

    Returns:
        List of individual raw messages, each ending with CR
    """
    if content.startswith(codecs.BOM_UTF8):
        content = content[len(codecs.BOM_UTF8):]
    normalized = content.replace(b"\r\n", CR_BYTE).replace(b"\n", CR_BYTE)

    messages = []
    current_lines: List[bytes] = []

    for line in normalized.split(CR_BYTE):
        stripped = line.strip()
        if not stripped or stripped == FS_BYTE:
            continue

        # New message starts with MSH
        if stripped.startswith(HEADER_BYTES):
            if current_lines:
                messages.append(CR_BYTE.join(current_lines) + CR_BYTE)
            current_lines = [line.lstrip()]
        elif current_lines:
            current_lines.append(line)
        else:
            logger.warning("Skipping data before the first MSH segment: %r", stripped[:20])

    # Don't forget the last message
    if current_lines:
        messages.append(CR_BYTE.join(current_lines) + CR_BYTE)

    return messages


# Parse HL7 File
def parse_hl7_file(
    filepath: Union[str, Path], encoding: str = None, **options
) -> List[HL7Message]:
    """
    Read and parse every message in an HL7 file.

    Args:
        filepath: Path to the HL7 file
        encoding: Fallback character set for messages without MSH-18
        **options: HL7Message constructor arguments

    Returns:
        List of parsed messages in file order
    """
    return list(iter_hl7_file(filepath, encoding=encoding, **options))


# Lazily Parse HL7 File
def iter_hl7_file(
    filepath: Union[str, Path], encoding: str = None, **options
) -> Iterator[HL7Message]:
    """
    Parse an HL7 file one message at a time.

    The file is read up front; messages are parsed only as the caller
    consumes them, so a parse error surfaces at the failing message.

    Yields:
        HL7Message for each message in the file
    """
    content = read_hl7_bytes(filepath)
    raw_messages = split_hl7_messages(content)
    logger.debug("Found %d messages in %s", len(raw_messages), filepath)

    for raw in raw_messages:
        yield HL7Message.from_hl7(raw, encoding=encoding, **options)


# Write JSON Output
def write_json_output(
    messages: List[HL7Message], filepath: Union[str, Path], pretty: bool = True
) -> None:
    """
    Write message summaries to a JSON file.

    Args:
        messages: Parsed messages
        filepath: Output file path
        pretty: If True, format JSON with indentation
    """
    output = [m.to_dict() for m in messages]

    indent = 2 if pretty else None

    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=indent)
