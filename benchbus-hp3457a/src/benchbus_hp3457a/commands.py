"""HP 3457A command table.

Every entry maps one opcode to its wire form. Commands end in ``;``;
optional positional parameters are comma-separated after the mnemonic
(``NRDGS,10,1;``), and a parameter left out in the middle keeps its comma.
Settings-only opcodes (marked ``requires_settings``) are rejected until the
initial snapshot exists; all others work without one and simply leave the
settings alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence, TypeVar

from benchbus_core.errors import CommandValidationError, ProtocolError
from benchbus_gpib.command import (
    CommandTable,
    OpcodeHandler,
    Operation,
    Query,
    Validator,
    Write,
    in_range,
    is_bool,
    is_text,
    one_of,
    only,
    required,
)
from benchbus_gpib.number import format_number, parse_bool, parse_int, parse_number, parse_numbers
from benchbus_gpib.ranges import Range
from benchbus_gpib.reading import ReadingFormat
from benchbus_hp3457a import calibration
from benchbus_hp3457a.ranges import RANGEABLE_MODES, RANGES
from benchbus_hp3457a.settings import (
    MAX_NPLC,
    AutoCalibrationType,
    AutoZeroMode,
    ACBandwidth,
    DisplayControl,
    Hp3457aSettings,
    InstalledOption,
    MathOperation,
    MathRegister,
    MeasurementMode,
    MeasurementTerminals,
    ReadingMemoryMode,
    ScanAdvanceMode,
    TriggerEvent,
)

Arguments = Mapping[str, Any]
Derive = Callable[[Any, Arguments, Any], Any]
E = TypeVar("E", bound=Enum)

# Below this ACBAND frequency the slow AC filter is selected.
AC_BANDWIDTH_SLOW_BELOW_HZ = 400.0

DEFAULT_NPLC = 0.005
DEFAULT_ERROR_MASK = 2047

FREQUENCY_PERIOD_SOURCES = (
    MeasurementMode.AC_VOLTAGE,
    MeasurementMode.AC_DC_VOLTAGE,
    MeasurementMode.AC_CURRENT,
    MeasurementMode.AC_DC_CURRENT,
)

MAX_CHANNEL = 13
ACTUATOR_CHANNELS = (8, 9)


@dataclass(frozen=True)
class TriggerConfiguration:
    """Trigger setup as read back with ``NRDGS?``, ``TARM?`` and ``TRIG?``."""

    number_of_readings: int
    sample_event: TriggerEvent
    trigger_arm_event: TriggerEvent
    trigger_event: TriggerEvent


# ---------------------------------------------------------------------------
# Formatting and parsing
# ---------------------------------------------------------------------------


def _arg(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    return format_number(value)


def _args(*values: Any) -> str:
    """Render optional positional parameters as ``,a,b``."""
    items = list(values)
    while items and items[-1] is None:
        items.pop()
    return "".join("," + ("" if value is None else _arg(value)) for value in items)


def parse_code(enum_type: type[E], text: str) -> E:
    """Parse a numeric reply into a member of a code enum.

    Raises:
        ProtocolError: If the reply is not a number or not a known code.
    """
    code = parse_int(text)
    try:
        return enum_type(code)
    except ValueError:
        raise ProtocolError(f"Unknown {enum_type.__name__} code: {text.strip()!r}") from None


def parse_number_of_readings(text: str) -> tuple[int, TriggerEvent]:
    """Parse an ``NRDGS?`` reply (``"count,event"``)."""
    parts = text.strip().split(",")
    if len(parts) != 2:
        raise ProtocolError(f"Invalid NRDGS? reply: {text!r}")
    return parse_int(parts[0]), parse_code(TriggerEvent, parts[1])


def parse_trigger_configuration(replies: Sequence[str]) -> TriggerConfiguration:
    """Parse the ``NRDGS?``, ``TARM?`` and ``TRIG?`` replies, in that order."""
    count, sample_event = parse_number_of_readings(replies[0])
    return TriggerConfiguration(
        number_of_readings=count,
        sample_event=sample_event,
        trigger_arm_event=parse_code(TriggerEvent, replies[1]),
        trigger_event=parse_code(TriggerEvent, replies[2]),
    )


def _parse_pair(text: str) -> tuple[int, int]:
    parts = text.strip().split(",")
    if len(parts) != 2:
        raise ProtocolError(f"Expected two values, got {text!r}")
    return parse_int(parts[0]), parse_int(parts[1])


def _parse_math(text: str) -> tuple[MathOperation, MathOperation]:
    parts = text.strip().split(",")
    if len(parts) != 2:
        raise ProtocolError(f"Expected two values, got {text!r}")
    return parse_code(MathOperation, parts[0]), parse_code(MathOperation, parts[1])


def _parse_nplc(text: str) -> float:
    nplc = parse_number(text)
    if not 0.0 <= nplc <= MAX_NPLC:
        raise ProtocolError(f"NPLC out of range: {text!r}")
    return nplc


def _parse_status_byte(text: str) -> int:
    value = parse_int(text)
    if not 0 <= value <= 0xFF:
        raise ProtocolError(f"Status byte out of range: {text!r}")
    return value


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _is_range(name: str) -> Validator:
    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if value is not None and not isinstance(value, Range):
            raise CommandValidationError(f"{name} must be a Range, got {value!r}")

    return check


def _is_channel_list(name: str) -> Validator:
    def check(arguments: Arguments) -> None:
        channels = arguments.get(name)
        if channels is None:
            return
        if isinstance(channels, (str, bytes)) or not channels:
            raise CommandValidationError(f"{name} must be a non-empty list of channels")
        for channel in channels:
            if isinstance(channel, bool) or not isinstance(channel, int):
                raise CommandValidationError(f"{name} entries must be integers, got {channel!r}")
            if not 0 <= channel <= MAX_CHANNEL:
                raise CommandValidationError(f"channel must be in [0, {MAX_CHANNEL}], got {channel}")

    return check


def _no_terminator(name: str) -> Validator:
    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if isinstance(value, str) and (";" in value or "\n" in value):
            raise CommandValidationError(f"{name} must not contain ';' or a newline")

    return check


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------


def _from_argument(field: str, name: str, default: Any = None) -> Derive:
    """Copy an argument into a settings field; None picks *default*."""

    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return None
        value = arguments.get(name)
        return settings.derive(**{field: default if value is None else value})

    return derive


def _from_result(field: str) -> Derive:
    """Copy the parsed reply into a settings field."""

    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None or result is None:
            return None
        return settings.derive(**{field: result})

    return derive


def _from_trigger(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None or result is None:
        return None
    return settings.derive(
        number_of_readings=result.number_of_readings,
        sample_event=result.sample_event,
        trigger_arm_event=result.trigger_arm_event,
        trigger_event=result.trigger_event,
    )


_TRIGGER_QUERIES: tuple[Operation, ...] = (Query("NRDGS?;"), Query("TARM?;"), Query("TRIG?;"))


def _trigger_queries(settings: Any) -> list[Operation]:
    """Trigger read-back, issued only when there are settings to update."""
    return list(_TRIGGER_QUERIES) if settings is not None else []


def _parse_trigger_if_any(replies: Sequence[str], arguments: Arguments, settings: Any) -> Any:
    return parse_trigger_configuration(replies) if replies else None


# ---------------------------------------------------------------------------
# Handler builders
# ---------------------------------------------------------------------------


def _fixed(opcode: str, text: str, derive: Derive | None = None) -> OpcodeHandler:
    """A command without arguments."""
    return OpcodeHandler(
        opcode,
        validators=(only(),),
        render=lambda arguments, settings: [Write(text)],
        derive=derive,
    )


def _flag(
    opcode: str,
    mnemonic: str,
    field: str | None = None,
    *,
    on: str = "1",
    derive: Derive | None = None,
) -> OpcodeHandler:
    """``<MNEMONIC> 1|0;`` from a required ``enabled`` argument."""
    return OpcodeHandler(
        opcode,
        validators=(required("enabled"), only("enabled"), is_bool("enabled")),
        render=lambda arguments, settings: [
            Write(f"{mnemonic} {on if arguments['enabled'] else '0'};")
        ],
        derive=derive if derive is not None else (_from_argument(field, "enabled") if field else None),
    )


def _set_flag_confirmed(opcode: str, mnemonic: str, field: str) -> OpcodeHandler:
    """``<MNEMONIC> 1|0;`` followed by ``<MNEMONIC>?;``."""
    return OpcodeHandler(
        opcode,
        validators=(required("enabled"), only("enabled"), is_bool("enabled")),
        render=lambda arguments, settings: [
            Write(f"{mnemonic} {int(arguments['enabled'])};"),
            Query(f"{mnemonic}?;"),
        ],
        parse=lambda replies, arguments, settings: parse_bool(replies[0]),
        derive=_from_result(field),
    )


def _query(
    opcode: str,
    text: str,
    parse: Callable[[str], Any],
    field: str | None = None,
) -> OpcodeHandler:
    """A single query, optionally recorded in the settings."""
    return OpcodeHandler(
        opcode,
        validators=(only(),),
        render=lambda arguments, settings: [Query(text)],
        parse=lambda replies, arguments, settings: parse(replies[0]),
        derive=_from_result(field) if field else None,
    )


def _set_number_confirmed(
    opcode: str,
    mnemonic: str,
    name: str,
    field: str,
    low: float | None = None,
    high: float | None = None,
) -> OpcodeHandler:
    """``<MNEMONIC> value;`` followed by ``<MNEMONIC>?;``."""
    return OpcodeHandler(
        opcode,
        validators=(required(name), only(name), in_range(name, low, high)),
        render=lambda arguments, settings: [
            Write(f"{mnemonic} {format_number(arguments[name])};"),
            Query(f"{mnemonic}?;"),
        ],
        parse=lambda replies, arguments, settings: parse_number(replies[0]),
        derive=_from_result(field),
    )


def _slot(opcode: str, template: str, high: int) -> OpcodeHandler:
    """A command addressing a numbered memory slot."""
    return OpcodeHandler(
        opcode,
        validators=(required("slot"), only("slot"), in_range("slot", 0, high, integer=True)),
        render=lambda arguments, settings: [Write(template.format(arguments["slot"]))],
    )


def _select_mode(opcode: str, mode: MeasurementMode, parameters: tuple[str, ...]) -> OpcodeHandler:
    """Function shortcut such as ``DCV[,range][,resolution];``."""
    return OpcodeHandler(
        opcode,
        validators=(only(*parameters), *(in_range(name, 0.0) for name in parameters)),
        render=lambda arguments, settings: [
            Write(f"{mode.mnemonic}{_args(*(arguments.get(name) for name in parameters))};")
        ],
        derive=lambda settings, arguments, result: settings.with_measurement_mode(mode),
        requires_settings=True,
    )


# ---------------------------------------------------------------------------
# Opcodes with bespoke rendering or derivation
# ---------------------------------------------------------------------------


def _render_range(arguments: Arguments, settings: Hp3457aSettings) -> list[Operation]:
    candidate: Range = arguments["range"]
    mode = settings.measurement_mode
    if mode not in RANGEABLE_MODES:
        raise CommandValidationError(f"The range cannot be selected in {mode.name}")
    if not RANGES.contains(mode, candidate):
        raise CommandValidationError(f"Range {candidate} is not available in {mode.name}")
    return [Write(f"R {format_number(candidate.full_scale)};"), Query("RANGE?;")]


def _derive_range(settings: Hp3457aSettings, arguments: Arguments, result: Range | None) -> Any:
    return settings.derive(range=result, auto_range=result is None)


def _derive_auto_range(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None:
        return None
    enabled = arguments["enabled"]
    return settings.derive(auto_range=enabled, range=None if enabled else settings.range)


def _derive_auto_zero(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None:
        return None
    mode = AutoZeroMode.ALWAYS if arguments["enabled"] else AutoZeroMode.FUNCTION_OR_RANGE_CHANGES
    return settings.derive(auto_zero_mode=mode)


def _derive_ac_bandwidth(settings: Hp3457aSettings, arguments: Arguments, result: Any) -> Any:
    slow = arguments["frequency_hz"] < AC_BANDWIDTH_SLOW_BELOW_HZ
    return settings.derive(ac_bandwidth=ACBandwidth.SLOW if slow else ACBandwidth.FAST)


def _render_frequency_period_source(arguments: Arguments, settings: Any) -> list[Operation]:
    source = arguments.get("source")
    if source is None:
        return [Write("FSOURCE;")]
    if source not in FREQUENCY_PERIOD_SOURCES:
        raise CommandValidationError(f"{source.name} cannot be a frequency/period source")
    return [Write(f"FSOURCE {source.value};")]


def _derive_actuator(closed: bool) -> Derive:
    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return None
        channel = arguments["channel"]
        if closed:
            return settings.derive(**{f"open_channel_{channel}": False})
        delay = arguments.get("delay")
        return settings.derive(
            **{
                f"open_channel_{channel}": True,
                f"switch_delay_channel_{channel}": True if delay is None else delay,
            }
        )

    return derive


def _render_open_actuator(arguments: Arguments, settings: Any) -> list[Operation]:
    delay = arguments.get("delay")
    suffix = "" if delay is None else f",{int(delay)}"
    return [Write(f"OPEN {arguments['channel']}{suffix};")]


def _derive_nplc(settings: Any, arguments: Arguments, result: Any) -> Any:
    if settings is None:
        return None
    nplc = arguments.get("nplc")
    return settings.with_nplc(DEFAULT_NPLC if nplc is None else nplc)


def _derive_nplc_result(settings: Any, arguments: Arguments, result: float) -> Any:
    return None if settings is None else settings.with_nplc(result)


def _render_output_format(arguments: Arguments, settings: Any) -> list[Operation]:
    fmt: ReadingFormat = arguments["format"]
    operations: list[Operation] = [Write(f"OFORMAT {fmt.value};")]
    if settings is not None and settings.reading_format is not fmt:
        # Clears the reading memory.
        operations.append(Write("MFORMAT 4;"))
    return operations


def _derive_trigger_arm(settings: Any, arguments: Arguments, result: Any) -> Any:
    updated = _from_trigger(settings, arguments, result)
    if updated is None:
        return None
    count = arguments.get("count")
    arms = count if arguments.get("event") is TriggerEvent.SGL and count is not None else 0
    return updated.derive(number_of_trigger_arms=arms)


def _derive_reset(base: Callable[[], Hp3457aSettings]) -> Derive:
    def derive(settings: Any, arguments: Arguments, result: Any) -> Any:
        if settings is None:
            return base()
        return settings.with_reset(base())

    return derive


# ---------------------------------------------------------------------------
# The table
# ---------------------------------------------------------------------------

_MODE_SHORTCUTS = (
    ("dc_volts", MeasurementMode.DC_VOLTAGE),
    ("ac_volts", MeasurementMode.AC_VOLTAGE),
    ("ac_dc_volts", MeasurementMode.AC_DC_VOLTAGE),
    ("ohms", MeasurementMode.RESISTANCE_2W),
    ("ohms_4w", MeasurementMode.RESISTANCE_4W),
    ("dc_current", MeasurementMode.DC_CURRENT),
    ("ac_current", MeasurementMode.AC_CURRENT),
    ("ac_dc_current", MeasurementMode.AC_DC_CURRENT),
)


def _mode_selection() -> list[OpcodeHandler]:
    handlers = [
        OpcodeHandler(
            "measurement_mode",
            validators=(required("mode"), only("mode"), one_of("mode", MeasurementMode)),
            render=lambda arguments, settings: [Write(f"{arguments['mode'].mnemonic};")],
            derive=lambda settings, arguments, result: settings.with_measurement_mode(
                arguments["mode"]
            ),
            requires_settings=True,
        ),
        OpcodeHandler(
            "function",
            validators=(
                required("mode"),
                only("mode", "range", "resolution"),
                one_of("mode", MeasurementMode),
                in_range("range", 0.0),
                in_range("resolution", 0.0),
            ),
            render=lambda arguments, settings: [
                Write(
                    "FUNC"
                    + _args(arguments["mode"], arguments.get("range"), arguments.get("resolution"))
                    + ";"
                )
            ],
            derive=lambda settings, arguments, result: settings.with_measurement_mode(
                arguments["mode"]
            ),
            requires_settings=True,
        ),
        _select_mode("frequency", MeasurementMode.FREQUENCY, ("max_input",)),
        _select_mode("period", MeasurementMode.PERIOD, ("max_input",)),
    ]
    handlers.extend(
        _select_mode(opcode, mode, ("range", "resolution")) for opcode, mode in _MODE_SHORTCUTS
    )
    return handlers


def _ranging() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "auto_range",
            validators=(only(),),
            render=lambda arguments, settings: [Write("ARANGE 1;")],
            derive=lambda settings, arguments, result: settings.derive(auto_range=True, range=None),
            requires_settings=True,
        ),
        _flag("set_auto_range", "ARANGE", derive=_derive_auto_range),
        OpcodeHandler(
            "range",
            validators=(required("range"), only("range"), _is_range("range")),
            render=_render_range,
            parse=lambda replies, arguments, settings: RANGES.classify(
                settings.measurement_mode, parse_number(replies[0])
            ),
            derive=_derive_range,
            requires_settings=True,
        ),
        OpcodeHandler(
            "range_resolution",
            validators=(
                only("range", "resolution"),
                in_range("range", 0.0),
                in_range("resolution", 0.0),
            ),
            render=lambda arguments, settings: [
                Write(f"R{_args(arguments.get('range'), arguments.get('resolution'))};")
            ],
        ),
        _query("get_range", "RANGE?;", parse_number),
        _flag("auto_zero", "AZERO", derive=_derive_auto_zero),
        OpcodeHandler(
            "set_auto_zero_mode",
            validators=(required("mode"), only("mode"), one_of("mode", AutoZeroMode)),
            render=lambda arguments, settings: [
                Write(f"AZERO {arguments['mode'].value};"),
                Query("AZERO?;"),
            ],
            parse=lambda replies, arguments, settings: parse_code(AutoZeroMode, replies[0]),
            derive=_from_result("auto_zero_mode"),
        ),
        _query(
            "get_auto_zero_mode",
            "AZERO?;",
            lambda text: parse_code(AutoZeroMode, text),
            "auto_zero_mode",
        ),
    ]


def _calibration() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "auto_calibrate",
            validators=(
                required("calibration"),
                only("calibration"),
                one_of("calibration", AutoCalibrationType),
            ),
            render=lambda arguments, settings: [Write(f"ACAL {arguments['calibration'].value};")],
        ),
        OpcodeHandler(
            "ac_bandwidth",
            validators=(required("frequency_hz"), only("frequency_hz"), in_range("frequency_hz", 0.0)),
            render=lambda arguments, settings: [
                Write(f"ACBAND {format_number(arguments['frequency_hz'])};")
            ],
            derive=_derive_ac_bandwidth,
            requires_settings=True,
        ),
        OpcodeHandler(
            "peek",
            validators=(
                required("address"),
                only("address"),
                in_range("address", 0, calibration.MAX_PEEK_ADDRESS, integer=True),
            ),
            exchange=calibration.peek,
        ),
        OpcodeHandler(
            "read_calibration_data",
            validators=(only(),),
            exchange=calibration.read_calibration_data,
        ),
    ]


def _interface() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "set_gpib_address",
            validators=(required("address"), only("address"), in_range("address", 0, 31, integer=True)),
            render=lambda arguments, settings: [Write(f"ADDRESS {arguments['address']};")],
            derive=_from_argument("gpib_address", "address"),
        ),
        _flag("set_eoi", "END", "eoi", on="2"),
        _flag("set_input_buffering", "INBUF", "input_buffering"),
        OpcodeHandler(
            "set_service_request_mask",
            validators=(only("mask"), in_range("mask", 0, 0xFF, integer=True)),
            render=lambda arguments, settings: [Write(f"RQS{_args(arguments.get('mask'))};")],
            derive=_from_argument("service_request_mask", "mask", 0),
        ),
        OpcodeHandler(
            "set_error_mask",
            validators=(only("mask"), in_range("mask", 0, 0xFFFF, integer=True)),
            render=lambda arguments, settings: [
                Write("EMASK;" if arguments.get("mask") is None else f"EMASK {arguments['mask']};")
            ],
            derive=_from_argument("error_mask", "mask", DEFAULT_ERROR_MASK),
        ),
        _query("get_error", "ERR?;", lambda text: parse_int(text) & 0xFFFF),
        _query("get_auxiliary_error", "AUXERR?;", lambda text: parse_int(text) & 0xFFFF),
        _query("get_status_byte", "STB?;", _parse_status_byte),
        _fixed("clear_status_byte", "CSB;"),
        _fixed("fire_service_request", "SRQ;"),
    ]


def _front_panel() -> list[OpcodeHandler]:
    return [
        _flag("set_beep", "BEEP", "beep_enabled"),
        _fixed("beep", "BEEP 2;"),
        OpcodeHandler(
            "tone",
            validators=(
                required("frequency_hz", "duration_s"),
                only("frequency_hz", "duration_s"),
                in_range("frequency_hz", 0.0),
                in_range("duration_s", 0.0),
            ),
            render=lambda arguments, settings: [
                Write(
                    f"TONE {format_number(arguments['frequency_hz'])},"
                    f"{format_number(arguments['duration_s'])};"
                )
            ],
        ),
        _flag("set_lockout", "LOCK", "locked"),
        OpcodeHandler(
            "display",
            validators=(
                only("control", "message"),
                one_of("control", DisplayControl),
                is_text("message", 51),
                _no_terminator("message"),
            ),
            render=lambda arguments, settings: [
                Write(f"DISP{_args(arguments.get('control'), arguments.get('message'))};")
            ],
        ),
    ]


def _subprograms() -> list[OpcodeHandler]:
    return [
        _slot("call_subprogram", "CALL {};", 19),
        _slot("store_subprogram", "SUB {};", 19),
        _fixed("end_subprogram", "SUBEND;"),
        _fixed("pause_subprogram", "PAUSE;"),
        _fixed("clear_subprograms", "SCRATCH;"),
        _slot("store_state", "SSTATE {};", 30),
        _slot("recall_state", "RSTATE,{};", 30),
    ]


def _identity() -> list[OpcodeHandler]:
    return [
        _query("get_calibration_number", "CALNUM?;", parse_int, "calibration_number"),
        _query("get_id", "ID?;", str.strip, "id"),
        _query(
            "get_installed_option",
            "OPT?;",
            lambda text: parse_code(InstalledOption, text),
            "installed_option",
        ),
        _query("get_integer_scale", "ISCALE?;", parse_number, "integer_scale"),
        _query("get_line_frequency", "LINE?;", parse_number, "line_frequency_hz"),
        _set_number_confirmed(
            "set_line_frequency_reference",
            "LFREQ",
            "frequency_hz",
            "line_frequency_reference_hz",
            low=0.0,
        ),
        _query(
            "get_line_frequency_reference", "LFREQ?;", parse_number, "line_frequency_reference_hz"
        ),
    ]


def _scanner() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "set_input_channel",
            validators=(
                required("channel"),
                only("channel"),
                in_range("channel", 0, MAX_CHANNEL, integer=True),
            ),
            render=lambda arguments, settings: [
                Write(f"CHAN {arguments['channel']};"),
                Query("CHAN?;"),
            ],
            parse=lambda replies, arguments, settings: parse_int(replies[0]),
            derive=_from_result("input_channel"),
        ),
        _query("get_input_channel", "CHAN?;", parse_int, "input_channel"),
        OpcodeHandler(
            "close_actuator",
            validators=(required("channel"), only("channel"), one_of("channel", ACTUATOR_CHANNELS)),
            render=lambda arguments, settings: [Write(f"CLOSE {arguments['channel']};")],
            derive=_derive_actuator(closed=True),
        ),
        OpcodeHandler(
            "open_actuator",
            validators=(
                required("channel"),
                only("channel", "delay"),
                one_of("channel", ACTUATOR_CHANNELS),
                is_bool("delay"),
            ),
            render=_render_open_actuator,
            derive=_derive_actuator(closed=False),
        ),
        _fixed("card_reset", "CRESET;"),
        OpcodeHandler(
            "scan_advance",
            validators=(only("mode"), one_of("mode", ScanAdvanceMode)),
            render=lambda arguments, settings: [Write(f"SADV{_args(arguments.get('mode'))};")],
        ),
        OpcodeHandler(
            "set_scan_list",
            validators=(required("channels"), only("channels"), _is_channel_list("channels")),
            render=lambda arguments, settings: [Write(f"SLIST{_args(*arguments['channels'])};")],
        ),
        _query("get_scan_list_size", "SLIST?;", parse_int),
    ]


def _measurement_options() -> list[OpcodeHandler]:
    return [
        _set_number_confirmed("set_delay", "DELAY", "delay_s", "delay_s", low=-1.0, high=3600.0),
        _query("get_delay", "DELAY?;", parse_number, "delay_s"),
        _set_flag_confirmed("set_fixed_impedance", "FIXEDZ", "fixed_impedance"),
        _query("get_fixed_impedance", "FIXEDZ?;", parse_bool, "fixed_impedance"),
        _set_flag_confirmed("set_offset_compensation", "OCOMP", "offset_compensation"),
        _query("get_offset_compensation", "OCOMP?;", parse_bool, "offset_compensation"),
        OpcodeHandler(
            "set_frequency_period_source",
            validators=(only("source"), one_of("source", MeasurementMode)),
            render=_render_frequency_period_source,
            derive=_from_argument(
                "frequency_period_source", "source", MeasurementMode.AC_VOLTAGE
            ),
        ),
        OpcodeHandler(
            "function_fast",
            validators=(required("code"), only("code"), in_range("code", 10, 58, integer=True)),
            render=lambda arguments, settings: [Write(f"F{arguments['code']};")],
        ),
        OpcodeHandler(
            "set_number_of_digits",
            validators=(only("digits"), in_range("digits", 3, 6, integer=True)),
            render=lambda arguments, settings: [Write(f"NDIG{_args(arguments.get('digits'))};")],
        ),
        OpcodeHandler(
            "set_nplc",
            validators=(only("nplc"), in_range("nplc", 0.0, MAX_NPLC)),
            render=lambda arguments, settings: [Write(f"NPLC{_args(arguments.get('nplc'))};")],
            derive=_derive_nplc,
        ),
        OpcodeHandler(
            "get_nplc",
            validators=(only(),),
            render=lambda arguments, settings: [Query("NPLC?;")],
            parse=lambda replies, arguments, settings: _parse_nplc(replies[0]),
            derive=_derive_nplc_result,
        ),
        OpcodeHandler(
            "set_terminals",
            validators=(only("terminals"), one_of("terminals", MeasurementTerminals)),
            render=lambda arguments, settings: [
                Write(f"TERM{_args(arguments.get('terminals'))};"),
                Query("TERM?;"),
            ],
            parse=lambda replies, arguments, settings: parse_code(MeasurementTerminals, replies[0]),
            derive=_from_result("terminals"),
        ),
        _query(
            "get_terminals",
            "TERM?;",
            lambda text: parse_code(MeasurementTerminals, text),
            "terminals",
        ),
    ]


def _math_and_memory() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "set_math",
            validators=(
                only("operation_a", "operation_b"),
                one_of("operation_a", MathOperation),
                one_of("operation_b", MathOperation),
            ),
            render=lambda arguments, settings: [
                Write(f"MATH{_args(arguments.get('operation_a'), arguments.get('operation_b'))};")
            ],
        ),
        _query(
            "get_math",
            "MATH?;",
            _parse_math,
        ),
        OpcodeHandler(
            "recall_math",
            validators=(only("register"), one_of("register", MathRegister)),
            render=lambda arguments, settings: [Query(f"RMATH{_args(arguments.get('register'))};")],
            parse=lambda replies, arguments, settings: parse_number(replies[0]),
        ),
        OpcodeHandler(
            "store_math",
            validators=(
                only("register", "value"),
                one_of("register", MathRegister),
                in_range("value"),
            ),
            render=lambda arguments, settings: [
                Write(f"SMATH{_args(arguments.get('register'), arguments.get('value'))};")
            ],
        ),
        _query("get_stored_reading_count", "MCOUNT?;", parse_int),
        OpcodeHandler(
            "set_reading_memory",
            validators=(only("mode"), one_of("mode", ReadingMemoryMode)),
            render=lambda arguments, settings: [Write(f"MEM{_args(arguments.get('mode'))};")],
            derive=_from_argument("reading_memory_mode", "mode", ReadingMemoryMode.FIFO),
        ),
        OpcodeHandler(
            "format_reading_memory",
            validators=(only("format"), one_of("format", ReadingFormat)),
            render=lambda arguments, settings: [Write(f"MFORMAT{_args(arguments.get('format'))};")],
        ),
        OpcodeHandler(
            "set_memory_sizes",
            validators=(
                only("readings_bytes", "subprograms_bytes"),
                in_range("readings_bytes", 0, integer=True),
                in_range("subprograms_bytes", 0, integer=True),
            ),
            render=lambda arguments, settings: [
                Write(
                    "MSIZE"
                    + _args(arguments.get("readings_bytes"), arguments.get("subprograms_bytes"))
                    + ";"
                )
            ],
        ),
        _query("get_memory_sizes", "MSIZE?;", _parse_pair, "memory_sizes"),
        OpcodeHandler(
            "recall_memory",
            validators=(
                only("first", "count", "record"),
                in_range("first", 1, integer=True),
                in_range("count", 1, integer=True),
                in_range("record", 1, integer=True),
            ),
            render=lambda arguments, settings: [
                Query(
                    "RMEM"
                    + _args(arguments.get("first"), arguments.get("count"), arguments.get("record"))
                    + ";"
                )
            ],
            parse=lambda replies, arguments, settings: parse_numbers(replies[0]),
        ),
        OpcodeHandler(
            "set_output_format",
            validators=(required("format"), only("format"), one_of("format", ReadingFormat)),
            render=_render_output_format,
            derive=_from_argument("reading_format", "format"),
        ),
    ]


def _triggering() -> list[OpcodeHandler]:
    return [
        OpcodeHandler(
            "set_number_of_readings",
            validators=(
                only("count", "event"),
                in_range("count", 1, integer=True),
                one_of("event", TriggerEvent),
            ),
            render=lambda arguments, settings: [
                Write(f"NRDGS{_args(arguments.get('count'), arguments.get('event'))};"),
                *_trigger_queries(settings),
            ],
            parse=_parse_trigger_if_any,
            derive=_from_trigger,
        ),
        OpcodeHandler(
            "get_number_of_readings",
            validators=(only(),),
            render=lambda arguments, settings: list(_TRIGGER_QUERIES),
            parse=lambda replies, arguments, settings: parse_trigger_configuration(replies),
            derive=_from_trigger,
        ),
        OpcodeHandler(
            "set_trigger_arm",
            validators=(
                only("event", "count"),
                one_of("event", TriggerEvent),
                in_range("count", 0, integer=True),
            ),
            render=lambda arguments, settings: [
                Write(f"TARM{_args(arguments.get('event'), arguments.get('count'))};"),
                *_trigger_queries(settings),
            ],
            parse=_parse_trigger_if_any,
            derive=_derive_trigger_arm,
        ),
        _query(
            "get_trigger_arm",
            "TARM?;",
            lambda text: parse_code(TriggerEvent, text),
            "trigger_arm_event",
        ),
        OpcodeHandler(
            "set_trigger_event",
            validators=(only("event"), one_of("event", TriggerEvent)),
            render=lambda arguments, settings: [
                Write(f"TRIG{_args(arguments.get('event'))};"),
                *_trigger_queries(settings),
            ],
            parse=_parse_trigger_if_any,
            derive=_from_trigger,
        ),
        _query(
            "get_trigger_event",
            "TRIG?;",
            lambda text: parse_code(TriggerEvent, text),
            "trigger_event",
        ),
        _flag("set_trigger_buffering", "TBUFF", "trigger_buffering"),
        _set_number_confirmed("set_timer", "TIMER", "interval_s", "timer_s", low=0.0),
        _query("get_timer", "TIMER?;", parse_number, "timer_s"),
        _fixed("trigger", "?;"),
    ]


def _reset() -> list[OpcodeHandler]:
    return [
        _fixed("preset", "PRESET;", derive=_derive_reset(Hp3457aSettings.from_preset)),
        _fixed("reset", "RESET;", derive=_derive_reset(Hp3457aSettings.from_reset)),
        _fixed("self_test", "TEST;"),
    ]


def build_command_table() -> CommandTable:
    """Return the complete HP 3457A opcode table."""
    return CommandTable(
        [
            *_mode_selection(),
            *_ranging(),
            *_calibration(),
            *_interface(),
            *_front_panel(),
            *_subprograms(),
            *_identity(),
            *_scanner(),
            *_measurement_options(),
            *_math_and_memory(),
            *_triggering(),
            *_reset(),
        ]
    )


COMMANDS = build_command_table()
