"""Tests for ESH-3 text readings and the status byte."""

from __future__ import annotations

import logging

import pytest

from benchbus_core import ProtocolError, Resolution, Unit
from benchbus_esh3 import Esh3Settings, Esh3Status, ReadingStatus, ReadingType, decode_reading
from benchbus_esh3.reading import parse_reading

# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------


class TestDecodeReading:
    def test_valid_level(self) -> None:
        settings = Esh3Settings.power_on()
        reading = decode_reading(b"VL 23.5\r\n", settings)
        assert reading is not None
        assert reading.value == 23.5
        assert reading.unit is Unit.DECIBEL
        assert reading.resolution is Resolution.DIGITS_4
        assert reading.quantity == "LEVEL"
        assert reading.settings is settings
        assert reading.overflow is False
        assert reading.error is False
        assert reading.message is None

    @pytest.mark.parametrize(
        "raw, quantity, unit, resolution",
        [
            (b"FR 10.7", "FREQUENCY", Unit.MEGAHERTZ, Resolution.DIGITS_6),
            (b"VM -12.25", "POWER", Unit.DBM, Resolution.DIGITS_4),
            (b"VN 125", "VOLTAGE", Unit.MICROVOLT, Resolution.DIGITS_3),
            (b"CL 3.5", "CURRENT_DB", Unit.DB_MICROAMPERE, Resolution.DIGITS_4),
            (b"EL 40", "E_FIELD_DB", Unit.DB_MICROVOLT_PER_METER, Resolution.DIGITS_4),
            (b"MN 0.5", "H_FIELD", Unit.MICROAMPERE_PER_METER, Resolution.DIGITS_3),
            (b"AP 80", "MODULATION_DEPTH_POSITIVE_PEAK", Unit.PERCENT, Resolution.DIGITS_2),
            (b"OS -1.2", "FREQUENCY_OFFSET", Unit.KILOHERTZ, Resolution.DIGITS_3),
            (b"DN 5", "FREQUENCY_DEVIATION_NEGATIVE_PEAK", Unit.KILOHERTZ, Resolution.DIGITS_3),
        ],
    )
    def test_reading_types(
        self, raw: bytes, quantity: str, unit: Unit, resolution: Resolution
    ) -> None:
        reading = decode_reading(raw, Esh3Settings())
        assert reading is not None
        assert reading.quantity == quantity
        assert reading.unit is unit
        assert reading.resolution is resolution

    @pytest.mark.parametrize(
        "char, label",
        [("H", "Overflow"), ("U", "Underflow"), ("X", "Overload")],
    )
    def test_invalid_status_marks_reading(self, char: str, label: str) -> None:
        reading = decode_reading(f"FR{char}30.0".encode("ascii"), Esh3Settings())
        assert reading is not None
        assert reading.value == 30.0
        assert reading.overflow is True
        assert reading.error is True
        assert reading.message == label

    @pytest.mark.parametrize(
        "raw",
        [b"VL", b"QQ 1.0", b"VLZ1.0", b"VL abc", b"VL \xb51.0"],
    )
    def test_undecodable_replies_are_dropped(
        self, raw: bytes, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="benchbus_esh3.reading"):
            assert decode_reading(raw, Esh3Settings()) is None
        assert "Dropping ESH-3 reading" in caplog.text

    def test_parse_reading(self) -> None:
        assert parse_reading("DFU2.5") == (
            ReadingType.FREQUENCY_DEVIATION,
            ReadingStatus.UNDERFLOW,
            2.5,
        )

    def test_parse_reading_rejects_short_reply(self) -> None:
        with pytest.raises(ProtocolError):
            parse_reading("VL")


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatus:
    def test_flags(self) -> None:
        status = Esh3Status.from_status_byte(0x70)
        assert status.service_request
        assert status.abnormal
        assert status.ready
        assert not status.extension

    def test_status_byte_is_masked(self) -> None:
        assert Esh3Status.from_status_byte(0x1FF).status_byte == 0xFF

    def test_no_error_without_abnormal_bit(self) -> None:
        status = Esh3Status.from_status_byte(0x19)
        assert status.error_code is None
        assert status.message is None
        assert str(status) == "0x19"

    @pytest.mark.parametrize(
        "status_byte, code, message",
        [
            (0x20, 0x0, "IEC Syntax Error"),
            (0x29, 0x9, "fStart > fStop"),
            (0x2E, 0xE, "Synth out of Sync"),
            (0x2F, 0xF, "Faulty Supply Voltage(s)"),
        ],
    )
    def test_error_codes(self, status_byte: int, code: int, message: str) -> None:
        status = Esh3Status.from_status_byte(status_byte)
        assert status.error_code == code
        assert status.message == message

    def test_extension_codes(self) -> None:
        assert Esh3Status.from_status_byte(0xA0).message == "GPIB Talker: No Listener"
        assert Esh3Status.from_status_byte(0xA5).message == "Unknown Extension in Status Byte"

    def test_str(self) -> None:
        assert str(Esh3Status.from_status_byte(0x62)) == "0x62: Data Above Limit"
