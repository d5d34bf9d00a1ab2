"""Tests for the HP 3457A command table."""

from __future__ import annotations

from typing import Any

import pytest

from benchbus_core import CommandValidationError, ProtocolError, Unit
from benchbus_gpib import Query, Range, ReadingFormat, Write
from benchbus_hp3457a import (
    COMMANDS,
    ACBandwidth,
    DisplayControl,
    Hp3457aSettings,
    MathOperation,
    MeasurementMode,
    MeasurementTerminals,
    TriggerConfiguration,
    TriggerEvent,
)
from benchbus_hp3457a.commands import parse_code, parse_trigger_configuration

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _render(opcode: str, settings: Any = None, **arguments: Any) -> list[Any]:
    handler = COMMANDS.lookup(opcode)
    handler.validate(arguments)
    assert handler.render is not None
    return list(handler.render(arguments, settings))


def _texts(opcode: str, settings: Any = None, **arguments: Any) -> list[str]:
    return [operation.text for operation in _render(opcode, settings, **arguments)]


def _derive(opcode: str, settings: Any, result: Any = None, **arguments: Any) -> Any:
    handler = COMMANDS.lookup(opcode)
    assert handler.derive is not None
    return handler.derive(settings, arguments, result)


# ---------------------------------------------------------------------------
# Wire forms
# ---------------------------------------------------------------------------


class TestWireForms:
    @pytest.mark.parametrize(
        "opcode, arguments, expected",
        [
            ("measurement_mode", {"mode": MeasurementMode.AC_DC_VOLTAGE}, ["ACDCV;"]),
            ("measurement_mode", {"mode": MeasurementMode.RESISTANCE_4W}, ["OHMF;"]),
            ("dc_volts", {"range": 30, "resolution": 0.001}, ["DCV,30,0.001;"]),
            ("ohms", {}, ["OHM;"]),
            ("frequency", {"max_input": 10}, ["FREQ,10;"]),
            ("function", {"mode": MeasurementMode.AC_VOLTAGE, "resolution": 0.1}, ["FUNC,2,,0.1;"]),
            ("auto_range", {}, ["ARANGE 1;"]),
            ("set_auto_range", {"enabled": False}, ["ARANGE 0;"]),
            ("range_resolution", {"range": 3}, ["R,3;"]),
            ("auto_zero", {"enabled": True}, ["AZERO 1;"]),
            ("ac_bandwidth", {"frequency_hz": 20}, ["ACBAND 20;"]),
            ("set_gpib_address", {"address": 22}, ["ADDRESS 22;"]),
            ("set_eoi", {"enabled": True}, ["END 2;"]),
            ("set_eoi", {"enabled": False}, ["END 0;"]),
            ("set_service_request_mask", {"mask": 127}, ["RQS,127;"]),
            ("set_error_mask", {}, ["EMASK;"]),
            ("set_error_mask", {"mask": 100}, ["EMASK 100;"]),
            ("beep", {}, ["BEEP 2;"]),
            ("tone", {"frequency_hz": 1000, "duration_s": 0.5}, ["TONE 1000,0.5;"]),
            (
                "display",
                {"control": DisplayControl.MESSAGE, "message": "HELLO"},
                ["DISP,2,HELLO;"],
            ),
            ("store_state", {"slot": 30}, ["SSTATE 30;"]),
            ("recall_state", {"slot": 3}, ["RSTATE,3;"]),
            ("open_actuator", {"channel": 8, "delay": True}, ["OPEN 8,1;"]),
            ("close_actuator", {"channel": 9}, ["CLOSE 9;"]),
            ("set_scan_list", {"channels": [1, 2, 3]}, ["SLIST,1,2,3;"]),
            ("function_fast", {"code": 10}, ["F10;"]),
            ("set_nplc", {}, ["NPLC;"]),
            ("set_math", {"operation_b": MathOperation.STAT}, ["MATH,,14;"]),
            ("recall_memory", {"first": 1, "count": 5}, ["RMEM,1,5;"]),
            ("set_number_of_readings", {"count": 10, "event": TriggerEvent.SGL}, ["NRDGS,10,3;"]),
            ("set_trigger_arm", {"event": TriggerEvent.SGL, "count": 5}, ["TARM,3,5;"]),
            ("set_timer", {"interval_s": 2.5}, ["TIMER 2.5;", "TIMER?;"]),
            ("trigger", {}, ["?;"]),
            ("preset", {}, ["PRESET;"]),
            ("reset", {}, ["RESET;"]),
        ],
    )
    def test_render(self, opcode: str, arguments: dict[str, Any], expected: list[str]) -> None:
        assert _texts(opcode, None, **arguments) == expected

    def test_queries_are_marked(self) -> None:
        operations = _render("set_line_frequency_reference", None, frequency_hz=50)
        assert operations == [Write("LFREQ 50;"), Query("LFREQ?;")]

    def test_trigger_refresh_needs_settings(self) -> None:
        settings = Hp3457aSettings()
        assert _texts("set_trigger_event", settings, event=TriggerEvent.EXT) == [
            "TRIG,2;",
            "NRDGS?;",
            "TARM?;",
            "TRIG?;",
        ]

    def test_output_format_change_clears_memory(self) -> None:
        settings = Hp3457aSettings()
        assert _texts("set_output_format", settings, format=ReadingFormat.LONG_INT) == [
            "OFORMAT 3;",
            "MFORMAT 4;",
        ]
        assert _texts("set_output_format", settings, format=ReadingFormat.TEXT) == ["OFORMAT 1;"]

    def test_frequency_period_source(self) -> None:
        assert _texts("set_frequency_period_source", None, source=MeasurementMode.AC_CURRENT) == [
            "FSOURCE 7;"
        ]
        assert _texts("set_frequency_period_source", None) == ["FSOURCE;"]
        with pytest.raises(CommandValidationError):
            _render("set_frequency_period_source", None, source=MeasurementMode.DC_VOLTAGE)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    @pytest.mark.parametrize(
        "opcode, arguments",
        [
            ("measurement_mode", {}),
            ("measurement_mode", {"mode": "DCV"}),
            ("set_eoi", {"enabled": 1}),
            ("set_gpib_address", {"address": 32}),
            ("store_subprogram", {"slot": 20}),
            ("set_input_channel", {"channel": 14}),
            ("close_actuator", {"channel": 3}),
            ("set_scan_list", {"channels": []}),
            ("set_scan_list", {"channels": [1, 99]}),
            ("function_fast", {"code": 59}),
            ("set_number_of_digits", {"digits": 7}),
            ("set_delay", {"delay_s": 4000}),
            ("display", {"message": "A;B"}),
            ("display", {"message": "x" * 52}),
            ("get_id", {"extra": 1}),
            ("range", {"range": 3.0}),
        ],
    )
    def test_rejected(self, opcode: str, arguments: dict[str, Any]) -> None:
        with pytest.raises(CommandValidationError):
            COMMANDS.lookup(opcode).validate(arguments)

    def test_range_outside_table(self) -> None:
        with pytest.raises(CommandValidationError, match="not available"):
            _render("range", Hp3457aSettings(), range=Range(0.03, Unit.OHM))


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


class TestDerive:
    def test_ac_bandwidth(self) -> None:
        settings = Hp3457aSettings(ac_bandwidth=ACBandwidth.FAST)
        assert _derive("ac_bandwidth", settings, frequency_hz=20.0).ac_bandwidth is ACBandwidth.SLOW
        assert _derive("ac_bandwidth", settings, frequency_hz=400.0) is settings

    def test_auto_range_off_keeps_range(self) -> None:
        settings = Hp3457aSettings(auto_range=False, range=Range(3.0, Unit.VOLT))
        derived = _derive("set_auto_range", settings, enabled=True)
        assert derived.auto_range is True
        assert derived.range is None

    def test_range_result(self) -> None:
        settings = Hp3457aSettings()
        derived = _derive("range", settings, Range(30.0, Unit.VOLT), range=Range(30.0, Unit.VOLT))
        assert derived.range == Range(30.0, Unit.VOLT)
        assert derived.auto_range is False

    def test_trigger_arm_counts_only_single(self) -> None:
        settings = Hp3457aSettings()
        result = TriggerConfiguration(1, TriggerEvent.AUTO, TriggerEvent.SGL, TriggerEvent.AUTO)
        derived = _derive("set_trigger_arm", settings, result, event=TriggerEvent.SGL, count=5)
        assert derived.number_of_trigger_arms == 5
        assert derived.trigger_arm_event is TriggerEvent.SGL
        result = TriggerConfiguration(1, TriggerEvent.AUTO, TriggerEvent.EXT, TriggerEvent.AUTO)
        derived = _derive("set_trigger_arm", settings, result, event=TriggerEvent.EXT, count=5)
        assert derived.number_of_trigger_arms == 0

    def test_without_settings_nothing_changes(self) -> None:
        assert _derive("set_eoi", None, enabled=True) is None
        assert _derive("get_calibration_number", None, 12) is None

    def test_reset_keeps_identity(self) -> None:
        settings = Hp3457aSettings(id="HP3457A", nplc=0.5, measurement_mode=MeasurementMode.PERIOD)
        derived = _derive("reset", settings)
        assert derived.id == "HP3457A"
        assert derived.nplc == 10.0
        assert derived.measurement_mode is MeasurementMode.DC_VOLTAGE

    def test_reading_memory_defaults_to_fifo(self) -> None:
        derived = _derive("set_reading_memory", Hp3457aSettings())
        assert derived.reading_memory_mode.name == "FIFO"

    def test_terminals_from_reply(self) -> None:
        handler = COMMANDS.lookup("set_terminals")
        assert handler.parse is not None
        result = handler.parse(["2\r\n"], {}, None)
        assert result is MeasurementTerminals.REAR


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_trigger_configuration(self) -> None:
        parsed = parse_trigger_configuration(["10,3\r\n", "1\r\n", "+4.0E+00\r\n"])
        assert parsed == TriggerConfiguration(
            number_of_readings=10,
            sample_event=TriggerEvent.SGL,
            trigger_arm_event=TriggerEvent.AUTO,
            trigger_event=TriggerEvent.HOLD,
        )

    def test_unknown_code(self) -> None:
        with pytest.raises(ProtocolError, match="TriggerEvent"):
            parse_code(TriggerEvent, "9")

    def test_malformed_number_of_readings(self) -> None:
        with pytest.raises(ProtocolError):
            parse_trigger_configuration(["10\r\n", "1\r\n", "1\r\n"])

    def test_nplc_reply_out_of_range(self) -> None:
        handler = COMMANDS.lookup("get_nplc")
        assert handler.parse is not None
        with pytest.raises(ProtocolError):
            handler.parse(["150\r\n"], {}, None)

    def test_math_reply(self) -> None:
        handler = COMMANDS.lookup("get_math")
        assert handler.parse is not None
        assert handler.parse(["1,14\r\n"], {}, None) == (MathOperation.CONT, MathOperation.STAT)

    @pytest.mark.parametrize("reply", ["1\r\n", "1,2\r\n", "1,x\r\n"])
    def test_math_reply_rejected(self, reply: str) -> None:
        handler = COMMANDS.lookup("get_math")
        assert handler.parse is not None
        with pytest.raises(ProtocolError):
            handler.parse([reply], {}, None)

    def test_every_opcode_unique_and_present(self) -> None:
        for opcode in ("peek", "read_calibration_data", "self_test", "get_scan_list_size"):
            assert opcode in COMMANDS
        assert len(COMMANDS) == len(set(COMMANDS))
