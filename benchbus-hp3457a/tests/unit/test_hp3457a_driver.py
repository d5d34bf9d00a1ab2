"""End-to-end tests of the HP 3457A driver against the emulator."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from benchbus_core import (
    CommandValidationError,
    PreconditionError,
    ProtocolError,
    Resolution,
    Unit,
)
from benchbus_gpib import OVERFLOW_MESSAGE, Range, ReadingFormat, TransactionEngine
from benchbus_hp3457a import (
    CalibrationData,
    Hp3457aDriver,
    Hp3457aEmulator,
    Hp3457aEmulatorConfig,
    Hp3457aSettings,
    InstalledOption,
    MathOperation,
    MeasurementMode,
    ReadingMemoryMode,
    TriggerEvent,
)
from benchbus_hp3457a.calibration import CALIBRATION_LENGTH

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Bench:
    """Engine wired to an emulator, recording everything it publishes."""

    def __init__(self, config: Hp3457aEmulatorConfig | None = None) -> None:
        self.emulator = Hp3457aEmulator(config)
        self.settings: list[Any] = []
        self.statuses: list[Any] = []
        self.readings: list[Any] = []
        self.engine = TransactionEngine(
            self.emulator,
            Hp3457aDriver(gpib_address=22, settle_s=0.0),
            timeout_s=1.0,
            on_settings_changed=self.settings.append,
            on_status_changed=self.statuses.append,
            on_reading_produced=self.readings.append,
        )

    def initialize(self) -> Hp3457aSettings:
        self.engine.initialize()
        self.emulator.writes.clear()
        self.settings.clear()
        self.statuses.clear()
        return self.engine.settings


def _calibration_bytes() -> bytes:
    return bytes(i % 256 for i in range(CALIBRATION_LENGTH))


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_reset_exchange(self) -> None:
        bench = _Bench()
        bench.engine.initialize()
        assert bench.emulator.writes[0] == b"RESET;END 2;MEM 0;RQS 127;ID?;"
        assert bench.emulator.writes[1] == b"OPT?;"

    def test_initial_snapshot(self) -> None:
        bench = _Bench(Hp3457aEmulatorConfig(identity="HP3457A", installed_option=44492))
        bench.engine.initialize()
        initial = bench.settings[0]
        assert initial.id == "HP3457A"
        assert initial.installed_option is InstalledOption.HP_44492
        assert initial.gpib_address == 22
        assert initial.eoi is True
        assert initial.service_request_mask == 0x7F
        assert initial.reading_memory_mode is ReadingMemoryMode.OFF

    def test_follow_ups_fill_in_facts(self) -> None:
        bench = _Bench(Hp3457aEmulatorConfig(calibration_number=7, line_frequency_hz=60.0))
        bench.engine.initialize()
        settings = bench.engine.settings
        assert settings.calibration_number == 7
        assert settings.line_frequency_hz == 60.0
        assert settings.nplc == 10.0
        assert settings.resolution is Resolution.DIGITS_6_5
        assert [s.version for s in bench.settings] == sorted(s.version for s in bench.settings)

    def test_each_settings_change_refreshes_status(self) -> None:
        bench = _Bench()
        bench.engine.initialize()
        # One initial snapshot plus one per follow-up, each follow-up with a status read.
        assert len(bench.settings) == 5
        assert len(bench.statuses) == 4


# ---------------------------------------------------------------------------
# Preconditions and validation
# ---------------------------------------------------------------------------


class TestPreconditions:
    def test_mode_change_without_settings_touches_nothing(self) -> None:
        bench = _Bench()
        with pytest.raises(PreconditionError):
            bench.engine.execute("measurement_mode", mode=MeasurementMode.DC_VOLTAGE)
        assert bench.emulator.writes == []
        assert bench.settings == []
        assert bench.statuses == []

    @pytest.mark.parametrize(
        "opcode, arguments",
        [
            ("range", {"range": Range(3.0, Unit.VOLT)}),
            ("auto_range", {}),
            ("ac_bandwidth", {"frequency_hz": 20.0}),
            ("dc_volts", {}),
            ("frequency", {}),
            ("function", {"mode": MeasurementMode.PERIOD}),
        ],
    )
    def test_settings_opcodes_rejected_before_initialize(
        self, opcode: str, arguments: dict[str, Any]
    ) -> None:
        bench = _Bench()
        with pytest.raises(PreconditionError):
            bench.engine.execute(opcode, **arguments)
        assert bench.emulator.writes == []

    def test_plain_opcodes_work_before_initialize(self) -> None:
        bench = _Bench()
        assert bench.engine.execute("get_id") == "HP3457A"
        assert bench.settings == []

    def test_invalid_argument_touches_nothing(self) -> None:
        bench = _Bench()
        bench.initialize()
        with pytest.raises(CommandValidationError):
            bench.engine.execute("set_nplc", nplc=200.0)
        assert bench.emulator.writes == []

    def test_range_missing_from_table(self) -> None:
        bench = _Bench()
        bench.initialize()
        with pytest.raises(CommandValidationError, match="not available"):
            bench.engine.execute("range", range=Range(5.0, Unit.VOLT))
        assert bench.emulator.writes == []

    def test_range_in_frequency_mode(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("measurement_mode", mode=MeasurementMode.FREQUENCY)
        bench.emulator.writes.clear()
        with pytest.raises(CommandValidationError, match="FREQUENCY"):
            bench.engine.execute("range", range=Range(1.5e6, Unit.HERTZ))
        assert bench.emulator.writes == []


# ---------------------------------------------------------------------------
# Mode and range
# ---------------------------------------------------------------------------


class TestModeChange:
    def test_mode_change_flow(self) -> None:
        bench = _Bench()
        old = bench.initialize()
        bench.engine.execute("measurement_mode", mode=MeasurementMode.AC_CURRENT)
        assert bench.emulator.writes == [b"ACI;"]
        assert len(bench.settings) == 1
        new = bench.settings[0]
        assert new.measurement_mode is MeasurementMode.AC_CURRENT
        assert new.auto_range is True
        assert new.version == old.version + 1
        assert len(bench.statuses) == 1
        assert old.measurement_mode is MeasurementMode.DC_VOLTAGE

    def test_same_mode_publishes_nothing(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("measurement_mode", mode=MeasurementMode.DC_VOLTAGE)
        assert bench.emulator.writes == [b"DCV;"]
        assert bench.settings == []
        assert bench.statuses == []

    def test_mode_change_re_enables_auto_range(self) -> None:
        bench = _Bench()
        bench.initialize()
        selected = bench.engine.execute("range", range=Range(3.0, Unit.VOLT))
        assert selected == Range(3.0, Unit.VOLT)
        assert bench.engine.settings.auto_range is False
        assert bench.engine.settings.range == Range(3.0, Unit.VOLT)
        bench.engine.execute("measurement_mode", mode=MeasurementMode.AC_VOLTAGE)
        assert bench.engine.settings.auto_range is True
        assert bench.engine.settings.range is None

    def test_range_renders_full_scale_and_confirms(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("range", range=Range(0.3, Unit.VOLT))
        assert bench.emulator.writes[:2] == [b"R 0.3;", b"RANGE?;"]

    def test_nplc_sets_resolution(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_nplc", nplc=0.1)
        assert bench.emulator.writes == [b"NPLC,0.1;"]
        assert bench.engine.settings.nplc == 0.1
        assert bench.engine.settings.resolution is Resolution.DIGITS_5_5
        assert bench.engine.execute("get_nplc") == 0.1


# ---------------------------------------------------------------------------
# Service requests and harvest
# ---------------------------------------------------------------------------


class TestServiceRequest:
    def test_hold_produces_no_readings(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_trigger_event", event=TriggerEvent.HOLD)
        assert bench.engine.settings.trigger_event is TriggerEvent.HOLD
        bench.statuses.clear()
        bench.emulator.push_reading(1.0)
        assert bench.engine.poll_service_request() is True
        assert bench.readings == []
        assert len(bench.statuses) == 1
        assert bench.statuses[0].ready is True
        assert bench.emulator.stored_readings == 1

    def test_fifo_harvest(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_reading_memory", mode=ReadingMemoryMode.FIFO)
        for value in (1.0, 2.0, 3.0):
            bench.emulator.push_reading(value)
        assert bench.engine.poll_service_request() is True
        assert [reading.value for reading in bench.readings] == [1.0, 2.0, 3.0]
        assert all(reading.settings is bench.engine.settings for reading in bench.readings)
        assert all(reading.unit is Unit.VOLT for reading in bench.readings)
        assert bench.emulator.stored_readings == 0

    def test_lifo_harvest_order(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_reading_memory", mode=ReadingMemoryMode.LIFO)
        for value in (1.0, 2.0, 3.0):
            bench.emulator.push_reading(value)
        bench.engine.poll_service_request()
        assert [reading.value for reading in bench.readings] == [3.0, 2.0, 1.0]

    def test_memory_off_harvests_one(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.push_reading(-0.125)
        bench.emulator.push_reading(0.5)
        bench.engine.poll_service_request()
        assert [reading.value for reading in bench.readings] == [-0.125]

    def test_continuous_memory_aborts_harvest(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_reading_memory", mode=ReadingMemoryMode.CONTINUOUS)
        bench.emulator.push_reading(1.0)
        assert bench.engine.poll_service_request() is True
        assert bench.readings == []

    def test_unparseable_count_aborts_harvest(self, caplog: pytest.LogCaptureFixture) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_reading_memory", mode=ReadingMemoryMode.FIFO)
        bench.emulator.query_overrides["MCOUNT"] = "garbage\r\n"
        bench.emulator.push_reading(1.0)
        with caplog.at_level(logging.WARNING, logger="benchbus_gpib.engine"):
            assert bench.engine.poll_service_request() is True
        assert bench.readings == []
        assert "service request handling aborted" in caplog.text

        del bench.emulator.query_overrides["MCOUNT"]
        assert bench.engine.execute("get_stored_reading_count") == 1
        assert bench.engine.poll_service_request() is False

    def test_no_service_request_pending(self) -> None:
        bench = _Bench()
        bench.initialize()
        assert bench.engine.poll_service_request() is False
        assert bench.readings == []

    def test_trigger_command_produces_reading(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.input_value = 4.25
        bench.engine.execute("trigger")
        bench.engine.poll_service_request()
        assert [reading.value for reading in bench.readings] == [4.25]

    def test_overflow_flag_marks_reading(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.push_reading(1.0e9, overflow=True)
        bench.engine.poll_service_request()
        (reading,) = bench.readings
        assert reading.overflow is True
        assert reading.error is True
        assert reading.message == OVERFLOW_MESSAGE

    @pytest.mark.parametrize("fmt", [ReadingFormat.SHORT_INT, ReadingFormat.LONG_INT])
    def test_scaled_formats_query_integer_scale(self, fmt: ReadingFormat) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_output_format", format=fmt)
        assert bench.emulator.writes[:2] == [f"OFORMAT {fmt.value};".encode(), b"MFORMAT 4;"]
        bench.emulator.integer_scale = 1e-4
        bench.emulator.push_reading(1.5)
        bench.emulator.writes.clear()
        bench.engine.poll_service_request()
        (reading,) = bench.readings
        assert reading.value == pytest.approx(1.5)
        assert b"ISCALE?;" in bench.emulator.writes

    def test_short_real_format(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("set_output_format", format=ReadingFormat.SHORT_REAL)
        bench.emulator.push_reading(0.25)
        bench.engine.poll_service_request()
        assert [reading.value for reading in bench.readings] == [0.25]


# ---------------------------------------------------------------------------
# Status escalation
# ---------------------------------------------------------------------------


class TestStatusEscalation:
    def test_hardware_error_reads_auxiliary_register(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.inject_hardware_error(0x0040)
        status = bench.engine.refresh_status()
        assert bench.emulator.writes == [b"ERR?;", b"AUXERR?;"]
        assert status.error_code == 0x0001
        assert status.auxiliary_error_code == 0x0040
        assert "Amps self-test failed" in status.messages()
        assert bench.statuses == [status]

    def test_syntax_error_stops_at_error_register(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.write(b"BOGUS;")
        bench.emulator.writes.clear()
        status = bench.engine.refresh_status()
        assert bench.emulator.writes == [b"ERR?;"]
        assert status.error_code == 0x0010
        assert status.auxiliary_error_code is None
        assert status.messages() == ["Unrecognizable command"]


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------


class TestCalibration:
    def test_dump(self) -> None:
        bench = _Bench()
        bench.emulator.set_calibration_data(_calibration_bytes())
        data = bench.engine.execute("read_calibration_data")
        assert isinstance(data, CalibrationData)
        assert len(data) == 448
        assert data.data == _calibration_bytes()
        assert bench.emulator.writes[0] == b"PEEK 64;"
        assert bench.emulator.writes[-1] == b"PEEK 511;"

    def test_overlap_mismatch_aborts(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.emulator.set_calibration_data(_calibration_bytes())
        bench.emulator.peek_overrides[0x50] = 0xFF00
        with pytest.raises(ProtocolError, match="0x050"):
            bench.engine.execute("read_calibration_data")
        assert bench.settings == []

    def test_peek_returns_high_byte(self) -> None:
        bench = _Bench()
        bench.emulator.set_calibration_data(_calibration_bytes())
        assert bench.engine.execute("peek", address=0x41) == 1
        assert bench.emulator.writes == [b"PEEK 65;"]

    def test_peek_address_validated(self) -> None:
        bench = _Bench()
        with pytest.raises(CommandValidationError):
            bench.engine.execute("peek", address=40000)


# ---------------------------------------------------------------------------
# Reset and preset
# ---------------------------------------------------------------------------


class TestReset:
    def test_preset_keeps_unit_facts(self) -> None:
        bench = _Bench()
        before = bench.initialize()
        bench.engine.execute("measurement_mode", mode=MeasurementMode.RESISTANCE_4W)
        bench.engine.execute("preset")
        after = bench.engine.settings
        assert after.measurement_mode is MeasurementMode.DC_VOLTAGE
        assert after.trigger_event is TriggerEvent.SYN
        assert after.nplc == 1.0
        assert after.id == before.id
        assert after.gpib_address == 22
        assert after.version > before.version

    def test_syn_trigger_harvests_one_reading(self) -> None:
        bench = _Bench()
        bench.initialize()
        bench.engine.execute("preset")
        bench.emulator.push_reading(2.0)
        bench.emulator.push_reading(3.0)
        # PRESET clears the RQS mask, so deliver the status byte directly.
        assert bench.engine.handle_service_request(bench.emulator.serial_poll()) is True
        assert [reading.value for reading in bench.readings] == [2.0]


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------


class TestMath:
    def test_get_math_reads_back_operations(self) -> None:
        bench = _Bench()
        bench.initialize()
        assert bench.engine.execute("get_math") == (MathOperation.OFF, MathOperation.OFF)
        bench.engine.execute(
            "set_math", operation_a=MathOperation.CONT, operation_b=MathOperation.STAT
        )
        assert bench.engine.execute("get_math") == (MathOperation.CONT, MathOperation.STAT)
