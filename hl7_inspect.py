#!/usr/bin/env python3
"""
HL7 Message Inspector - Command Line Interface

Parses HL7 v2.x files (plain or MLLP-framed, any declared character set)
and prints a JSON summary of each message, or the messages re-serialized
in wire format.

Usage:
    python hl7_inspect.py input.hl7
    python hl7_inspect.py input.hl7 -o output.json
    python hl7_inspect.py input.hl7 --format hl7 --hl7-version 2.5.1
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

# Add the project root to path for direct execution
sys.path.insert(0, str(Path(__file__).parent))

from hl7codec import HL7Message, SUPPORTED_VERSIONS, __version__
from hl7codec.exceptions import FileReadError, HL7Error, HL7ParseError
from hl7codec.io_handler import parse_hl7_file

logger = logging.getLogger("hl7_inspect")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hl7-inspect",
        description="Parse HL7 v2 messages and print their segments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s results.hl7
      Print a JSON summary of every message to stdout

  %(prog)s results.hl7 -e 8859/1
      Decode messages without MSH-18 as ISO 8859-1

  %(prog)s results.hl7 --format hl7 --hl7-version 2.5.1
      Re-serialize messages with MSH-12 set to 2.5.1
""",
    )

    parser.add_argument("input_file", type=Path, help="Path to the HL7 file to parse")

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        dest="output_file",
        help="Output file path (default: stdout)",
    )

    parser.add_argument(
        "-e",
        "--encoding",
        help="Character set for messages that do not declare one in MSH-18 (default: UTF-8)",
    )

    parser.add_argument(
        "--hl7-version",
        choices=SUPPORTED_VERSIONS,
        help="HL7 version assigned to parsed messages",
    )

    parser.add_argument(
        "-i",
        "--ignore-errors",
        action="store_true",
        help="Report segment problems as warnings instead of failing",
    )

    parser.add_argument(
        "-f",
        "--format",
        choices=("json", "hl7"),
        default="json",
        help="Output format (default: json)",
    )

    parser.add_argument(
        "-c",
        "--compact",
        action="store_true",
        help="Output compact JSON (no indentation)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed parsing information and warnings",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def format_output(messages: List[HL7Message], output_format: str, compact: bool = False) -> str:
    """
    Format parsed messages for output.

    JSON output is a single object for one message and an array otherwise.
    HL7 output keeps CR terminators, one message after another.
    """
    if output_format == "hl7":
        return "".join(message.to_hl7() for message in messages)

    indent = None if compact else 2
    output = [message.to_dict() for message in messages]
    if len(output) == 1:
        return json.dumps(output[0], indent=indent)
    return json.dumps(output, indent=indent)


def print_warnings(messages: List[HL7Message]) -> None:
    """Print tolerated segment problems to stderr."""
    for i, message in enumerate(messages):
        msg_label = f"Message {i + 1}" if len(messages) > 1 else "Message"
        for warning in message.warnings:
            print(f"Warning ({msg_label}): {warning}", file=sys.stderr)


def print_parse_error(error: HL7ParseError) -> None:
    """Print a parse error with the offending line when it is known."""
    print(f"Parse error: {error}", file=sys.stderr)
    if error.line_number is not None and error.line_contents is not None:
        print(f"  line {error.line_number}: {error.line_contents!r}", file=sys.stderr)


def main(args: List[str] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        messages = parse_hl7_file(
            parsed_args.input_file,
            encoding=parsed_args.encoding,
            version=parsed_args.hl7_version,
            ignore_parsing_errors=parsed_args.ignore_errors,
        )

        if not messages:
            print("No HL7 messages found in file", file=sys.stderr)
            return 1

        if parsed_args.verbose:
            print_warnings(messages)

        output = format_output(messages, parsed_args.format, compact=parsed_args.compact)

        if parsed_args.output_file:
            with open(parsed_args.output_file, "w", encoding="utf-8", newline="") as f:
                f.write(output)
                if parsed_args.format == "json":
                    f.write("\n")
            logger.info("Output written to: %s", parsed_args.output_file)
        else:
            print(output)

        if parsed_args.verbose:
            count = len(messages)
            msg = "message" if count == 1 else "messages"
            print(f"Successfully parsed {count} {msg}", file=sys.stderr)

        return 0

    except FileReadError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    except HL7ParseError as e:
        print_parse_error(e)
        return 2

    except HL7Error as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if parsed_args.verbose:
            logger.exception("Unexpected error")
        return 3


if __name__ == "__main__":
    sys.exit(main())
