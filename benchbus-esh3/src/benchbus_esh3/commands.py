"""R&S ESH-3 command table.

The ESH-3 takes short alphanumeric commands terminated by a carriage
return (``FR10.7\r``). It has no queries: every setter records its argument
in the snapshot, since the receiver cannot be asked for its state. Setters
issued before initialization still reach the receiver but leave the
settings alone.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping

from benchbus_core.errors import CommandValidationError
from benchbus_gpib.command import (
    CommandTable,
    OpcodeHandler,
    Operation,
    Validator,
    Write,
    in_range,
    is_bool,
    is_text,
    one_of,
    only,
    required,
)
from benchbus_esh3.settings import (
    AttenuationMode,
    DataOutputMode,
    DemodulationMode,
    Esh3Settings,
    FieldDataOutputMode,
    FrequencyScanRepeatMode,
    FrequencyScanSpeedMode,
    IfBandwidth,
    IndicatingMode,
    OperatingMode,
    OperatingRange,
    RecorderXAxisMode,
    StepSizeMode,
    XYRecorderSpectrumMode,
    clamp_frequency,
)

logger = logging.getLogger(__name__)

Arguments = Mapping[str, Any]
Derive = Callable[[Any, Arguments, Any], Any]

TERMINATOR = "\r"
DISPLAY_TEXT_LENGTH = 13
MAX_SLOT = 99
MAX_DELIMITER = 31
MAX_DA_X = 1023
MAX_DA_Y = 255


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_decimal(value: float, places: int) -> str:
    """Render *value* with at most *places* decimals and no trailing zeros.

    >>> format_decimal(10.7, 4)
    '10.7'
    >>> format_decimal(20.0, 2)
    '20'
    """
    text = f"{value:.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def format_megahertz(frequency_hz: float) -> str:
    """Clamp a frequency to the tuning range and render it in MHz."""
    return format_decimal(clamp_frequency(frequency_hz) * 1e-6, 4)


def _write(text: str) -> list[Operation]:
    return [Write(text + TERMINATOR)]


# ---------------------------------------------------------------------------
# Validators and derivations
# ---------------------------------------------------------------------------


def _no_terminator(name: str) -> Validator:
    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if isinstance(value, str) and ("\r" in value or "\n" in value):
            raise CommandValidationError(f"{name} must not contain a line terminator")

    return check


def _from_argument(field: str, name: str) -> Derive:
    """Copy an argument into a settings field."""

    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return None
        return settings.derive(**{field: arguments[name]})

    return derive


def _derive_frequency(field: str) -> Derive:
    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return None
        return settings.derive(**{field: clamp_frequency(arguments["frequency_hz"])})

    return derive


def _derive_attenuation_mode(settings: Any, arguments: Arguments, result: Any) -> Any:
    mode = arguments["mode"]
    if mode is AttenuationMode.MANUAL:
        logger.warning("ESH-3 has no manual attenuation command; set RF/IF attenuation instead")
    if settings is None:
        return None
    return settings.derive(attenuation_mode=mode)


def _derive_step_size(mode: StepSizeMode, field: str) -> Derive:
    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return None
        return settings.derive(step_size_mode=mode, **{field: arguments["step"]})

    return derive


def _derive_recorder_disabled(field: str, recorder: str) -> Derive:
    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if not arguments["disabled"]:
            logger.warning("ESH-3 has no command to enable the %s recorder", recorder)
        if settings is None:
            return None
        return settings.derive(**{field: arguments["disabled"]})

    return derive


def _derive_display_text(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None:
        return None
    text = arguments.get("text") or ""
    return settings.derive(display_text=text[:DISPLAY_TEXT_LENGTH])


def _derive_tests_cleared(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None:
        return None
    return settings.with_tests_cleared()


# ---------------------------------------------------------------------------
# Handler builders
# ---------------------------------------------------------------------------


def _fixed(opcode: str, text: str, derive: Derive | None = None) -> OpcodeHandler:
    """A command without arguments."""
    return OpcodeHandler(
        opcode,
        validators=(only(),),
        render=lambda arguments, settings: _write(text),
        derive=derive,
    )


def _flag(opcode: str, off: str, on: str, field: str) -> OpcodeHandler:
    """One of two commands chosen by a required ``enabled`` argument."""
    return OpcodeHandler(
        opcode,
        validators=(required("enabled"), only("enabled"), is_bool("enabled")),
        render=lambda arguments, settings: _write(on if arguments["enabled"] else off),
        derive=_from_argument(field, "enabled"),
    )


def _code(opcode: str, prefix: str, enum_type: type[Enum], field: str) -> OpcodeHandler:
    """``<PREFIX><code>`` from a required ``mode`` enumeration argument."""
    return OpcodeHandler(
        opcode,
        validators=(required("mode"), only("mode"), one_of("mode", enum_type)),
        render=lambda arguments, settings: _write(f"{prefix}{arguments['mode'].value}"),
        derive=_from_argument(field, "mode"),
    )


def _number(
    opcode: str,
    prefix: str,
    name: str,
    field: str,
    places: int,
    low: float | None = None,
) -> OpcodeHandler:
    """``<PREFIX><value>`` with a bounded number of decimals."""
    return OpcodeHandler(
        opcode,
        validators=(required(name), only(name), in_range(name, low)),
        render=lambda arguments, settings: _write(
            f"{prefix}{format_decimal(arguments[name], places)}"
        ),
        derive=_from_argument(field, name),
    )


def _frequency(opcode: str, prefix: str, field: str) -> OpcodeHandler:
    return OpcodeHandler(
        opcode,
        validators=(required("frequency_hz"), only("frequency_hz"), in_range("frequency_hz")),
        render=lambda arguments, settings: _write(
            f"{prefix}{format_megahertz(arguments['frequency_hz'])}"
        ),
        derive=_derive_frequency(field),
    )


def _padded(
    opcode: str,
    prefix: str,
    name: str,
    high: int,
    width: int,
    field: str | None = None,
) -> OpcodeHandler:
    """``<PREFIX><zero-padded integer>``."""
    return OpcodeHandler(
        opcode,
        validators=(required(name), only(name), in_range(name, 0, high, integer=True)),
        render=lambda arguments, settings: _write(f"{prefix}{arguments[name]:0{width}d}"),
        derive=_from_argument(field, name) if field else None,
    )


def _recorder_disabled(opcode: str, text: str, field: str, recorder: str) -> OpcodeHandler:
    """A recorder that can be switched off but not back on."""
    return OpcodeHandler(
        opcode,
        validators=(required("disabled"), only("disabled"), is_bool("disabled")),
        render=lambda arguments, settings: _write(text) if arguments["disabled"] else [],
        derive=_derive_recorder_disabled(field, recorder),
    )


# ---------------------------------------------------------------------------
# Opcode groups
# ---------------------------------------------------------------------------


def _frequencies() -> list[OpcodeHandler]:
    return [
        _frequency("frequency", "FR", "frequency_hz"),
        _frequency("frequency_start", "SA", "frequency_start_hz"),
        _frequency("frequency_stop", "SO", "frequency_stop_hz"),
    ]


def _attenuation_and_if() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "attenuation_mode",
            validators=(required("mode"), only("mode"), one_of("mode", AttenuationMode)),
            render=lambda arguments, settings: (
                [] if arguments["mode"] is AttenuationMode.MANUAL
                else _write(f"A{arguments['mode'].value}")
            ),
            derive=_derive_attenuation_mode,
        ),
        _number("rf_attenuation", "RA", "attenuation_db", "rf_attenuation_db", 2, low=0.0),
        _number("if_attenuation", "IA", "attenuation_db", "if_attenuation_db", 2, low=0.0),
        _flag("linearity_test", "G0", "G1", "linearity_test"),
        _code("if_bandwidth", "B", IfBandwidth, "if_bandwidth"),
        _code("demodulation_mode", "D", DemodulationMode, "demodulation_mode"),
    ]


def _calibration() -> list[OpcodeHandler]:
    return [
        _fixed("calibrate_check", "C1"),
        _fixed("calibrate_total", "C2"),
    ]


def _measurement() -> list[OpcodeHandler]:
    return [
        _flag("max_min_mode", "K0", "K1", "max_min_mode"),
        _code("operating_range", "L", OperatingRange, "operating_range"),
        _code("operating_mode", "M", OperatingMode, "operating_mode"),
        _code("indicating_mode", "N", IndicatingMode, "indicating_mode"),
        _code("data_output_mode", "O", DataOutputMode, "data_output_mode"),
        _number("measurement_time", "TS", "time_s", "measurement_time_s", 3, low=0.0),
    ]


def _scanning() -> list[OpcodeHandler]:
    return [
        _number("minimum_level", "SL", "level_db", "minimum_level_db", 1),
        _number("maximum_level", "SU", "level_db", "maximum_level_db", 1),
        _fixed("scanning_run", "SR"),
        _fixed("scanning_stop_interrupt", "SP"),
        _fixed("scanning_stop_reset", "SC"),
        _code("step_size_mode", "SF", StepSizeMode, "step_size_mode"),
        OpcodeHandler(
            "step_size_mhz",
            validators=(required("step"), only("step"), in_range("step", 0.0)),
            render=lambda arguments, settings: _write(f"SE{format_decimal(arguments['step'], 4)}"),
            derive=_derive_step_size(StepSizeMode.LINEAR, "step_size_mhz"),
        ),
        OpcodeHandler(
            "step_size_percent",
            validators=(required("step"), only("step"), in_range("step", 0.0)),
            render=lambda arguments, settings: _write(f"SE{format_decimal(arguments['step'], 2)}"),
            derive=_derive_step_size(StepSizeMode.LOGARITHMIC, "step_size_percent"),
        ),
        _code("frequency_scan_repeat_mode", "SF", FrequencyScanRepeatMode, "frequency_scan_repeat_mode"),
        _code("frequency_scan_speed_mode", "SF", FrequencyScanSpeedMode, "frequency_scan_speed_mode"),
    ]


def _special_functions() -> list[OpcodeHandler]:
    return [
        _fixed("sf_clear", "SF00", derive=_derive_tests_cleared),
        _flag("test_level", "SF10", "SF11", "test_level"),
        _flag("test_modulation_depth", "SF20", "SF21", "test_modulation_depth"),
        _flag(
            "test_modulation_depth_positive_peak",
            "SF22",
            "SF23",
            "test_modulation_depth_positive_peak",
        ),
        _flag(
            "test_modulation_depth_negative_peak",
            "SF24",
            "SF25",
            "test_modulation_depth_negative_peak",
        ),
        _flag("test_frequency_offset", "SF30", "SF31", "test_frequency_offset"),
        _flag("test_frequency_deviation", "SF40", "SF41", "test_frequency_deviation"),
        _flag(
            "test_frequency_deviation_positive_peak",
            "SF42",
            "SF43",
            "test_frequency_deviation_positive_peak",
        ),
        _flag(
            "test_frequency_deviation_negative_peak",
            "SF44",
            "SF45",
            "test_frequency_deviation_negative_peak",
        ),
        _code("field_data_output_mode", "SF", FieldDataOutputMode, "field_data_output_mode"),
    ]


def _slot(opcode: str, prefix: str) -> OpcodeHandler:
    """A command addressing a numbered settings memory."""
    return OpcodeHandler(
        opcode,
        validators=(required("slot"), only("slot"), in_range("slot", 0, MAX_SLOT, integer=True)),
        render=lambda arguments, settings: _write(f"{prefix}{arguments['slot']}"),
    )


def _memory() -> list[OpcodeHandler]:
    return [_slot("store", "ST"), _slot("recall", "RC")]


def _interface() -> list[OpcodeHandler]:
    return [
        _flag("eoi", "U0", "U1", "eoi"),
        _fixed("trigger", "X1"),
        _flag("srq_on_data_ready", "P0", "P1", "srq_on_data_ready"),
        _flag("srq_on_local", "J0", "J1", "srq_on_local"),
        _padded("gpib_delimiter", "WZ", "delimiter", MAX_DELIMITER, 2, "gpib_delimiter"),
    ]


def _front_panel() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "display_text",
            validators=(only("text"), is_text("text"), _no_terminator("text")),
            render=lambda arguments, settings: _write(
                "WT" + (arguments.get("text") or "")[:DISPLAY_TEXT_LENGTH]
            ),
            derive=_derive_display_text,
        ),
        _fixed("beep", "BP"),
    ]


def _recorder() -> list[OpcodeHandler]:
    return [
        _flag("recorder_code", "Y0", "Y1", "recorder_code"),
        _flag("antenna_probe_code", "Z0", "Z1", "antenna_probe_code"),
        _padded("da_x_register", "XP", "value", MAX_DA_X, 4),
        _padded("da_y_register", "YP", "value", MAX_DA_Y, 3),
        _code("recorder_x_axis_mode", "SF", RecorderXAxisMode, "recorder_x_axis_mode"),
        _flag("recorder_coding", "SF63", "SF62", "recorder_coding"),
        _recorder_disabled("no_yt_recorder", "SF64", "no_yt_recorder", "YT"),
        _recorder_disabled("no_xy_recorder", "SF65", "no_xy_recorder", "XY"),
        _recorder_disabled("no_zsg3_recorder", "SF66", "no_zsg3_recorder", "ZSG3"),
        _code("xy_recorder_spectrum_mode", "SF", XYRecorderSpectrumMode, "xy_recorder_spectrum_mode"),
    ]


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


def render_configuration(settings: Esh3Settings) -> list[Operation]:
    """Render the writes that put the receiver into *settings*."""
    steps: list[tuple[str, dict[str, Any]]] = [
        ("frequency", {"frequency_hz": settings.frequency_hz}),
        ("frequency_start", {"frequency_hz": settings.frequency_start_hz}),
        ("frequency_stop", {"frequency_hz": settings.frequency_stop_hz}),
        ("attenuation_mode", {"mode": settings.attenuation_mode}),
    ]
    if settings.attenuation_mode is AttenuationMode.MANUAL:
        steps += [
            ("rf_attenuation", {"attenuation_db": settings.rf_attenuation_db}),
            ("if_attenuation", {"attenuation_db": settings.if_attenuation_db}),
        ]
    steps += [
        ("linearity_test", {"enabled": settings.linearity_test}),
        ("if_bandwidth", {"mode": settings.if_bandwidth}),
        ("demodulation_mode", {"mode": settings.demodulation_mode}),
        ("max_min_mode", {"enabled": settings.max_min_mode}),
        ("operating_range", {"mode": settings.operating_range}),
        ("operating_mode", {"mode": settings.operating_mode}),
        ("indicating_mode", {"mode": settings.indicating_mode}),
        ("data_output_mode", {"mode": settings.data_output_mode}),
        ("measurement_time", {"time_s": settings.measurement_time_s}),
        ("minimum_level", {"level_db": settings.minimum_level_db}),
        ("maximum_level", {"level_db": settings.maximum_level_db}),
        ("step_size_mode", {"mode": settings.step_size_mode}),
    ]
    if settings.step_size_mode is StepSizeMode.LINEAR:
        steps.append(("step_size_mhz", {"step": settings.step_size_mhz}))
    else:
        steps.append(("step_size_percent", {"step": settings.step_size_percent}))
    steps += [
        ("test_level", {"enabled": settings.test_level}),
        ("test_modulation_depth", {"enabled": settings.test_modulation_depth}),
        (
            "test_modulation_depth_positive_peak",
            {"enabled": settings.test_modulation_depth_positive_peak},
        ),
        (
            "test_modulation_depth_negative_peak",
            {"enabled": settings.test_modulation_depth_negative_peak},
        ),
        ("test_frequency_offset", {"enabled": settings.test_frequency_offset}),
        ("test_frequency_deviation", {"enabled": settings.test_frequency_deviation}),
        (
            "test_frequency_deviation_positive_peak",
            {"enabled": settings.test_frequency_deviation_positive_peak},
        ),
        (
            "test_frequency_deviation_negative_peak",
            {"enabled": settings.test_frequency_deviation_negative_peak},
        ),
        ("frequency_scan_repeat_mode", {"mode": settings.frequency_scan_repeat_mode}),
        ("frequency_scan_speed_mode", {"mode": settings.frequency_scan_speed_mode}),
        ("field_data_output_mode", {"mode": settings.field_data_output_mode}),
        ("eoi", {"enabled": settings.eoi}),
        ("recorder_code", {"enabled": settings.recorder_code}),
        ("antenna_probe_code", {"enabled": settings.antenna_probe_code}),
        ("srq_on_data_ready", {"enabled": settings.srq_on_data_ready}),
        ("srq_on_local", {"enabled": settings.srq_on_local}),
        ("gpib_delimiter", {"delimiter": settings.gpib_delimiter}),
        ("display_text", {"text": settings.display_text}),
        ("recorder_x_axis_mode", {"mode": settings.recorder_x_axis_mode}),
        ("recorder_coding", {"enabled": settings.recorder_coding}),
    ]
    if settings.recorder_coding:
        steps += [
            ("no_yt_recorder", {"disabled": settings.no_yt_recorder}),
            ("no_xy_recorder", {"disabled": settings.no_xy_recorder}),
            ("no_zsg3_recorder", {"disabled": settings.no_zsg3_recorder}),
            ("xy_recorder_spectrum_mode", {"mode": settings.xy_recorder_spectrum_mode}),
        ]
    operations: list[Operation] = []
    for opcode, arguments in steps:
        render = COMMANDS[opcode].render
        if render is None:
            raise ValueError(f"{opcode} is an exchange opcode and cannot be replayed")
        operations.extend(render(arguments, settings))
    return operations


def _current_or_power_on(settings: Esh3Settings | None) -> Esh3Settings:
    return settings if settings is not None else Esh3Settings.power_on()


def build_command_table() -> CommandTable:
    """Return the complete ESH-3 opcode table."""
    return CommandTable(
        [
            *_frequencies(),
            *_attenuation_and_if(),
            *_calibration(),
            *_measurement(),
            *_scanning(),
            *_special_functions(),
            *_memory(),
            *_interface(),
            *_front_panel(),
            *_recorder(),
            OpcodeHandler(
                "refresh",
                validators=(only(),),
                render=lambda arguments, settings: render_configuration(
                    _current_or_power_on(settings)
                ),
                derive=lambda settings, arguments, result: _current_or_power_on(settings),
            ),
        ]
    )


COMMANDS = build_command_table()
