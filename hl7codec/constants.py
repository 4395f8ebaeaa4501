"""
Wire-format constants for HL7 v2.x messages.

Framing bytes come from the MLLP transport; the rest are the HL7
defaults that a message header may override.
"""

# MLLP framing characters
VT = "\x0b"  # start of block
FS = "\x1c"  # end of block
CR = "\r"  # segment terminator

VT_BYTE = VT.encode("ascii")
FS_BYTE = FS.encode("ascii")
CR_BYTE = CR.encode("ascii")

# Byte order mark some editors put in front of text files
BOM = "\ufeff"

HEADER_SEGMENT = "MSH"
FIELD_SEPARATOR = "|"

# MSH-18 is the 17th separator-delimited token after the "MSH" prefix
CHARSET_TOKEN_INDEX = 17
VERSION_FIELD_INDEX = 12

DEFAULT_ENCODING = "utf-8"

SUPPORTED_VERSIONS = (
    "2.1",
    "2.2",
    "2.3",
    "2.3.1",
    "2.4",
    "2.5",
    "2.5.1",
    "2.6",
    "2.7",
    "2.7.1",
    "2.8",
)
DEFAULT_VERSION = "2.5"
