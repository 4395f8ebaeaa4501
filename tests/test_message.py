"""Integration tests for the HL7 message codec."""

import codecs
from datetime import date

import pytest
from hl7codec import HL7Message
from hl7codec.config import FieldDictionary, MessageConfig
from hl7codec.constants import DEFAULT_VERSION
from hl7codec.exceptions import (
    HL7ParseError,
    InvalidArgumentError,
    MessageStructureError,
    SegmentParseError,
    UnknownEncodingError,
    UnsupportedVersionError,
)
from hl7codec.message import strip_framing
from hl7codec.segment import Segment


def build_msh(charset: str = "", version: str = "2.5") -> str:
    """Build an MSH line whose 18th field is charset."""
    fields = [
        "MSH",
        "^~\\&",
        "LAB",
        "HOSPITAL",
        "EHR",
        "CLINIC",
        "20250502130000",
        "",
        "ORU^R01",
        "MSG001",
        "P",
        version,
        "",
        "",
        "",
        "",
        "USA",
        charset,
    ]
    return "|".join(fields)


LAB_RESULT = (
    build_msh()
    + "\rPID|1||P12345^^^HOSP||Doe^John^M||19850210|M"
    + "\rOBR|1|ORD1|FIL1|GLU^Glucose"
    + "\rOBX|1|NM|GLU^Glucose||5.4|mmol/L|||||F"
    + "\rOBX|2|NM|NA^Sodium||140|mmol/L|||||F"
    + "\rOBX|3|NM|K^Potassium||4.1|mmol/L|||||F"
    + "\r"
)


# Tests for parsing
class TestParse:
    """Tests for splitting input into segments."""

    def test_parse_text(self):
        """Test parsing a plain text message."""
        message = HL7Message.from_hl7(LAB_RESULT)

        assert [s.segment_type for s in message.segments] == [
            "MSH",
            "PID",
            "OBR",
            "OBX",
            "OBX",
            "OBX",
        ]
        assert message.encoding is None
        assert message.msh.get_field(10) == "MSG001"

    def test_parse_bytes_with_declared_charset(self):
        """Test that MSH-18 selects the charset used for the whole message."""
        raw = (build_msh("8859/1", version="2.3") + "\rPID|1||123||Müller^Hans\r").encode(
            "latin-1"
        )

        message = HL7Message.from_hl7(raw)

        assert len(message) == 2
        assert message.encoding == "8859/1"
        assert message.get_segment("PID").get_component(5, 0) == "Müller"

    def test_parse_bytes_with_caller_encoding(self):
        """Test that the caller encoding is used when MSH-18 is empty."""
        raw = (build_msh("") + "\rPID|1||123||Müller^Hans\r").encode("cp1252")

        message = HL7Message().parse(raw, encoding="cp1252")

        assert message.encoding == "cp1252"
        assert message.get_segment("PID").get_component(5, 0) == "Müller"

    def test_parse_bytes_defaults_to_utf8(self):
        """Test the UTF-8 default."""
        raw = (build_msh("") + "\rPID|1||123||Müller^Hans\r").encode("utf-8")

        message = HL7Message.from_hl7(bytearray(raw))

        assert message.encoding == "utf-8"
        assert message.get_segment("PID").get_component(5, 0) == "Müller"

    def test_parse_bytes_with_byte_order_mark(self):
        """Test that a leading UTF-8 byte order mark is ignored."""
        raw = codecs.BOM_UTF8 + (build_msh("UTF-8") + "\rPID|1||123||Šimek^Jan\r").encode("utf-8")

        message = HL7Message.from_hl7(raw)

        assert message.encoding == "UTF-8"
        assert [s.segment_type for s in message.segments] == ["MSH", "PID"]
        assert message.get_segment("PID").get_component(5, 0) == "Šimek"
        assert message.to_hl7().startswith("MSH|^~\\&|LAB|")

    def test_parse_unknown_declared_charset(self):
        """Test that an MSH-18 value without a codec is reported."""
        raw = (build_msh("KLINGON") + "\r").encode("ascii")

        with pytest.raises(UnknownEncodingError):
            HL7Message.from_hl7(raw)

    def test_parse_mllp_framed_message(self):
        """Test that MLLP framing is stripped."""
        message = HL7Message.from_hl7("\x0b" + LAB_RESULT + "\x1c\r")

        assert len(message) == 6

    def test_parse_truncates_at_stray_end_block(self):
        """Test that anything after a stray FS is dropped."""
        text = build_msh() + "\rPID|1\x1cgarbage\rOBX|1\r"

        message = HL7Message.from_hl7(text)

        assert [s.segment_type for s in message.segments] == ["MSH", "PID"]

    def test_parse_skips_blank_lines(self):
        """Test that consecutive terminators do not create segments."""
        text = build_msh() + "\r\r\rPID|1\r\r"

        message = HL7Message.from_hl7(text)

        assert len(message) == 2

    def test_parse_replaces_previous_segments(self):
        """Test that parse is not additive."""
        message = HL7Message.from_hl7(LAB_RESULT)
        message.parse(build_msh() + "\rPID|1\r")

        assert len(message) == 2

    def test_message_delimiters_apply_to_segments(self):
        """Test that segments use the separators declared in MSH."""
        message = HL7Message.from_hl7("MSH#!~\\&#LAB\rPID#1##X!Y\r")

        assert message.delimiters.field == "#"
        assert message.get_segment("PID").get_component(3, 1) == "Y"

    def test_parse_rejects_other_input(self):
        """Test that input other than text or bytes is rejected."""
        with pytest.raises(InvalidArgumentError):
            HL7Message().parse(12345)

        with pytest.raises(ValueError):
            HL7Message().parse(None)

    def test_as_hl7_setter_parses(self):
        """Test that assigning as_hl7 parses the text."""
        message = HL7Message()
        message.as_hl7 = LAB_RESULT

        assert len(message) == 6
        assert message.as_hl7 == LAB_RESULT


# Tests for structural and segment errors
class TestParseErrors:
    """Tests for error reporting."""

    def test_message_must_start_with_msh(self):
        """Test that a missing header is a structural error."""
        with pytest.raises(MessageStructureError) as exc:
            HL7Message.from_hl7("PID|1\r" + build_msh() + "\r")

        assert not isinstance(exc.value, SegmentParseError)
        assert exc.value.line_number == 1
        assert exc.value.line_contents == "PID|1"
        assert "MSH" in str(exc.value)

    def test_empty_input_is_structural_error(self):
        """Test that empty text fails the header check."""
        with pytest.raises(MessageStructureError):
            HL7Message.from_hl7("")

    def test_segment_error_location(self):
        """Test that segment errors carry line number and contents."""
        text = build_msh() + "\rPID|1\r\rxyz|bad\r"

        with pytest.raises(SegmentParseError) as exc:
            HL7Message.from_hl7(text)

        error = exc.value
        assert error.line_number == 4
        assert error.line_contents == "xyz|bad"
        assert error.message_contents == text
        assert "line=4" in str(error)
        assert isinstance(error.__cause__, HL7ParseError)

    def test_header_error_location(self):
        """Test that an invalid MSH is reported on line 1."""
        with pytest.raises(SegmentParseError) as exc:
            HL7Message.from_hl7("MSH|^^\\&|LAB\rPID|1\r")

        assert exc.value.line_number == 1
        assert exc.value.segment == "MSH"

    def test_failed_parse_keeps_previous_segments(self):
        """Test that a failed parse never leaves a half-filled segment list."""
        message = HL7Message.from_hl7(LAB_RESULT)
        before = list(message.segments)

        with pytest.raises(SegmentParseError):
            message.parse(build_msh() + "\rPID|1\rbad line\r")

        assert message.segments == before

    def test_structural_error_keeps_previous_segments(self):
        """Test that a structural error does not clear the message."""
        message = HL7Message.from_hl7(LAB_RESULT)

        with pytest.raises(MessageStructureError):
            message.parse("PID|1\r")

        assert len(message) == 6

    def test_ignore_parsing_errors_does_not_hide_structure(self):
        """Test that ignore_parsing_errors never suppresses structural errors."""
        with pytest.raises(MessageStructureError):
            HL7Message.from_hl7("PID|1\r", ignore_parsing_errors=True)


# Tests for the version attribute
class TestVersion:
    """Tests for version validation."""

    def test_default_version(self):
        """Test the default when no version is given."""
        assert HL7Message().version == DEFAULT_VERSION
        assert HL7Message(version="").version == DEFAULT_VERSION

    def test_set_supported_version(self):
        """Test setting a supported version."""
        message = HL7Message(version="2.3")
        message.version = "2.5.1"

        assert message.version == "2.5.1"

    def test_unsupported_version_is_rejected(self):
        """Test that an unknown version fails and leaves the old value."""
        message = HL7Message(version="2.4")

        with pytest.raises(UnsupportedVersionError) as exc:
            message.version = "9.9"

        assert message.version == "2.4"
        assert exc.value.version == "9.9"
        assert isinstance(exc.value, InvalidArgumentError)

    def test_unsupported_version_in_constructor(self):
        """Test that the constructor validates the version."""
        with pytest.raises(UnsupportedVersionError):
            HL7Message(version="3.0")

    def test_parse_does_not_change_version(self):
        """Test that the instance version is kept after parsing."""
        message = HL7Message(version="2.4").parse(build_msh(version="2.3") + "\r")

        assert message.version == "2.4"


# Tests for serialization
class TestSerialize:
    """Tests for rendering messages back to wire format."""

    def test_round_trip_is_exact(self):
        """Test that an untouched message serializes byte for byte."""
        message = HL7Message.from_hl7(LAB_RESULT)

        assert message.to_hl7() == LAB_RESULT

    def test_reparse_gives_same_segments(self):
        """Test that re-parsing the output yields equal segments."""
        message = HL7Message.from_hl7(LAB_RESULT)

        reparsed = HL7Message.from_hl7(message.to_hl7())

        assert reparsed.segments == message.segments

    def test_version_written_to_header(self):
        """Test the end-to-end example: MSH-12 follows the message version."""
        raw = (build_msh("8859/1", version="2.3") + "\rPID|1||123\r").encode("latin-1")
        message = HL7Message.from_hl7(raw)

        output = message.to_hl7()

        assert output == build_msh("8859/1", version=DEFAULT_VERSION) + "\rPID|1||123\r"
        assert output.endswith("\r")
        assert message.msh.version_id == DEFAULT_VERSION

    def test_version_keeps_other_components(self):
        """Test that only the first component of MSH-12 is replaced."""
        message = HL7Message.from_hl7(build_msh(version="2.3^USA") + "\r", version="2.5.1")

        assert message.msh.get_field(12) == "2.3^USA"
        assert message.to_hl7().startswith(build_msh(version="2.5.1^USA"))

    def test_no_framing_on_output(self):
        """Test that output is never MLLP framed."""
        message = HL7Message.from_hl7("\x0b" + LAB_RESULT + "\x1c\r")

        assert message.to_hl7() == LAB_RESULT

    def test_empty_message(self):
        """Test that an empty message serializes to nothing."""
        assert HL7Message().to_hl7() == ""

    def test_to_dict(self):
        """Test the JSON summary."""
        message = HL7Message.from_hl7(LAB_RESULT)
        result = message.to_dict()

        assert result["version"] == DEFAULT_VERSION
        assert result["message_type"] == "ORU^R01"
        assert result["message_control_id"] == "MSG001"
        assert result["segments"][1]["fields"]["3"] == "P12345^^^HOSP"
        assert "encoding" not in result
        assert '"segment_type": "OBX"' in message.to_json()


# Tests for segment lookup and construction
class TestSegments:
    """Tests for finding and adding segments."""

    def test_get_segment_occurrence(self):
        """Test zero-based occurrence lookup among same-typed segments."""
        message = HL7Message.from_hl7(LAB_RESULT)

        assert message.get_segment("OBX").get_field(1) == "1"
        assert message.get_segment("OBX", 1).get_field(1) == "2"
        assert message.get_segment("OBX", 2).get_field(1) == "3"

    def test_get_segment_absent(self):
        """Test that missing types and occurrences return None."""
        message = HL7Message.from_hl7(LAB_RESULT)

        assert message.get_segment("OBX", 5) is None
        assert message.get_segment("NTE") is None
        assert message.get_segment("PID", 1) is None

    def test_get_segments(self):
        """Test listing all segments of one type."""
        message = HL7Message.from_hl7(LAB_RESULT)

        assert len(message.get_segments("OBX")) == 3

    def test_add_segment_by_type(self):
        """Test appending a new empty segment."""
        message = HL7Message.from_hl7(LAB_RESULT)
        nte = message.add("NTE")
        nte.set_field(3, "Fasting sample")

        assert message.segments[-1] is nte
        assert message.to_hl7().endswith("\rNTE|||Fasting sample\r")

    def test_add_existing_segment(self):
        """Test appending a segment built elsewhere."""
        message = HL7Message.from_hl7(LAB_RESULT)
        segment = Segment(message).parse("NTE|1||Comment")

        assert message.add(segment) is segment
        assert message.get_segment("NTE") is segment

    def test_add_rejects_other_values(self):
        """Test that add() only accepts segments or segment types."""
        with pytest.raises(InvalidArgumentError):
            HL7Message().add(42)

    def test_build_message_from_scratch(self):
        """Test building a header and a segment without parsing."""
        message = HL7Message(version="2.4")
        msh = message.add("MSH")
        msh.set_field(9, "ADT^A01")
        message.add("PID").set_field(3, "P1")

        expected_msh = "MSH|^~\\&" + "|" * 7 + "ADT^A01" + "|" * 3 + "2.4"
        assert message.to_hl7() == expected_msh + "\rPID|||P1\r"

    def test_add_does_not_enforce_header_first(self):
        """Test that add() leaves ordering to the caller."""
        message = HL7Message()
        message.add("PID")

        assert message.msh is None
        assert message.to_hl7() == "PID\r"


# Tests for configuration forwarding
class TestConfiguration:
    """Tests for options passed down to segments."""

    DICTIONARY = FieldDictionary(segments={"PID": ["SetId", "PatientId"]})

    def test_config_reaches_segments(self):
        """Test that every segment shares the message configuration."""
        message = HL7Message.from_hl7(LAB_RESULT, ignore_parsing_errors=True)

        assert all(s.config is message.config for s in message.segments)
        assert message.config.ignore_parsing_errors is True

    def test_custom_dict_is_checked(self):
        """Test that the instance dictionary reaches segment parsing."""
        message = HL7Message(custom_dict=self.DICTIONARY)

        with pytest.raises(SegmentParseError) as exc:
            message.parse(build_msh() + "\rPID|1||123\r")

        assert exc.value.line_number == 2
        assert exc.value.field_index == 3

    def test_ignore_parsing_errors_collects_warnings(self):
        """Test that tolerated segment problems become warnings."""
        message = HL7Message(custom_dict=self.DICTIONARY, ignore_parsing_errors=True)
        message.parse(build_msh() + "\rPID|1||123\r")

        assert len(message) == 2
        assert message.warnings == ["PID has 3 fields, dictionary defines 2"]

    def test_per_call_dict_overrides_instance_dict(self):
        """Test that a dictionary passed to parse() wins."""
        message = HL7Message(custom_dict=self.DICTIONARY)
        relaxed = FieldDictionary(segments={"PID": ["SetId", "PatientId", "PatientIdList"]})

        message.parse(build_msh() + "\rPID|1||123\r", custom_dict=relaxed)

        assert message.get_segment("PID").get_named_field("PatientIdList") == "123"
        assert message.config.custom_dict is self.DICTIONARY

    def test_config_object(self):
        """Test passing a ready-made MessageConfig."""
        config = MessageConfig(encode_hl7_data_types=True)
        message = HL7Message(config=config)
        message.add("ZDT").set_field(1, date(2025, 5, 2))

        assert message.config is config
        assert message.to_hl7() == "ZDT|20250502\r"

    def test_invalid_config_object(self):
        """Test that config must be a MessageConfig."""
        with pytest.raises(InvalidArgumentError):
            HL7Message(config={"ignore_parsing_errors": True})

    def test_custom_dict_must_be_field_dictionary(self):
        """Test that a plain mapping is rejected when the message is built."""
        with pytest.raises(InvalidArgumentError) as exc:
            HL7Message(custom_dict={"PID": ["SetId"]})

        assert "FieldDictionary" in str(exc.value)

    def test_per_call_custom_dict_must_be_field_dictionary(self):
        """Test that a plain mapping passed to parse() is rejected up front."""
        message = HL7Message.from_hl7(LAB_RESULT)

        with pytest.raises(InvalidArgumentError):
            message.parse(build_msh() + "\rPID|1||123\r", custom_dict={"PID": ["SetId"]})

        assert len(message) == 6

    def test_unexpected_segment_failure_is_located(self, monkeypatch):
        """Test that any failure inside a segment is reported with its line."""
        original_parse = Segment.parse

        def failing_parse(segment, raw_text):
            if raw_text.startswith("PID"):
                raise RuntimeError("dictionary lookup failed")
            return original_parse(segment, raw_text)

        monkeypatch.setattr(Segment, "parse", failing_parse)
        text = build_msh() + "\rPID|1||123\r"

        with pytest.raises(SegmentParseError) as exc:
            HL7Message().parse(text)

        assert exc.value.reason == "dictionary lookup failed"
        assert exc.value.line_number == 2
        assert exc.value.line_contents == "PID|1||123"
        assert exc.value.message_contents == text
        assert isinstance(exc.value.__cause__, RuntimeError)


# Tests for framing helper
class TestStripFraming:
    """Tests for MLLP framing removal."""

    def test_strip_full_frame(self):
        assert strip_framing("\x0bMSH|^~\\&\r\x1c\r") == "MSH|^~\\&\r"

    def test_strip_without_frame(self):
        assert strip_framing("MSH|^~\\&\r") == "MSH|^~\\&\r"

    def test_strip_stray_end_block(self):
        assert strip_framing("MSH|^~\\&\rPID|1\x1cXYZ") == "MSH|^~\\&\rPID|1"

    def test_strip_byte_order_mark(self):
        assert strip_framing("\ufeff\x0bMSH|^~\\&\r\x1c\r") == "MSH|^~\\&\r"
