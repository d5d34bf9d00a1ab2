"""Commands and opcode tables.

Each instrument describes its command language as a :class:`CommandTable`
of :class:`OpcodeHandler` records. A handler is a small bundle of pure
functions:

- ``validators`` check the arguments before anything else happens.
- ``render`` turns arguments and current settings into wire operations.
- ``parse`` turns the replies of the ``Query`` operations into a result.
- ``derive`` computes the next settings snapshot from the old one, the
  arguments and the result.

Procedural recipes that must inspect replies as they arrive (such as a
memory dump with a consistency check) provide ``exchange`` instead of
``render``/``parse`` and drive the bus session directly.

Example:
    >>> handler = OpcodeHandler(
    ...     opcode="auto_zero",
    ...     validators=(is_bool("enabled"),),
    ...     render=lambda args, settings: [Write(f"AZERO {int(args['enabled'])};")],
    ...     derive=lambda settings, args, result: settings.derive(auto_zero=args["enabled"]),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, Union

from benchbus_core.errors import CommandValidationError, UnknownOpcodeError
from benchbus_gpib.session import BusSession

Arguments = Mapping[str, Any]
Validator = Callable[[Arguments], None]


@dataclass(frozen=True)
class Write:
    """Write-only wire operation."""

    text: str


@dataclass(frozen=True)
class Query:
    """Write-then-read wire operation; its reply is passed to ``parse``."""

    text: str


Operation = Union[Write, Query]


@dataclass(frozen=True)
class Command:
    """A request to perform one protocol-level operation.

    Attributes:
        opcode: Name of the operation in the instrument's command table.
        arguments: Named arguments; all optional unless a validator says
            otherwise.
        synchronous: Whether the caller waits for the result.
        timeout_s: Bus token wait timeout; None uses the engine default.
    """

    opcode: str
    arguments: Mapping[str, Any] = field(default_factory=dict)
    synchronous: bool = True
    timeout_s: float | None = None

    def __post_init__(self) -> None:
        if not self.opcode:
            raise CommandValidationError("opcode must be non-empty")


@dataclass(frozen=True)
class OpcodeHandler:
    """Table entry describing how to carry out one opcode.

    Attributes:
        opcode: The opcode name.
        render: ``(arguments, settings) -> operations``. May raise
            :class:`CommandValidationError` for settings-dependent checks.
        parse: ``(replies, arguments, settings) -> result``. Receives one
            reply per ``Query`` operation, in order. Defaults to None.
        derive: ``(settings, arguments, result) -> settings``. Returning
            None or the same object means the settings are unchanged.
        validators: Argument checks run before any bus access.
        requires_settings: Reject the command while no settings snapshot
            has been published.
        exchange: ``(bus, arguments, settings) -> result``. Replaces
            ``render``/``parse`` for procedural recipes.
    """

    opcode: str
    render: Callable[[Arguments, Any], Sequence[Operation]] | None = None
    parse: Callable[[Sequence[str], Arguments, Any], Any] | None = None
    derive: Callable[[Any, Arguments, Any], Any] | None = None
    validators: tuple[Validator, ...] = ()
    requires_settings: bool = False
    exchange: Callable[[BusSession, Arguments, Any], Any] | None = None

    def __post_init__(self) -> None:
        if (self.render is None) == (self.exchange is None):
            raise ValueError(f"{self.opcode}: exactly one of render and exchange is required")

    def validate(self, arguments: Arguments) -> None:
        """Run all argument validators.

        Raises:
            CommandValidationError: If any validator rejects the arguments.
        """
        for validator in self.validators:
            validator(arguments)


class CommandTable(Mapping[str, OpcodeHandler]):
    """Immutable mapping of opcode to handler.

    Args:
        handlers: The handlers; opcodes must be unique.
    """

    def __init__(self, handlers: Iterable[OpcodeHandler]) -> None:
        self._handlers: dict[str, OpcodeHandler] = {}
        for handler in handlers:
            if handler.opcode in self._handlers:
                raise ValueError(f"Duplicate opcode: {handler.opcode}")
            self._handlers[handler.opcode] = handler

    def __getitem__(self, opcode: str) -> OpcodeHandler:
        return self._handlers[opcode]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def lookup(self, opcode: str) -> OpcodeHandler:
        """Return the handler for *opcode*.

        Raises:
            UnknownOpcodeError: If the opcode is not in the table.
        """
        try:
            return self._handlers[opcode]
        except KeyError:
            raise UnknownOpcodeError(f"Unknown opcode: {opcode!r}") from None


# ---------------------------------------------------------------------------
# Argument validators
# ---------------------------------------------------------------------------


def required(*names: str) -> Validator:
    """Require the named arguments to be present and not None."""

    def check(arguments: Arguments) -> None:
        for name in names:
            if arguments.get(name) is None:
                raise CommandValidationError(f"Missing required argument: {name}")

    return check


def only(*names: str) -> Validator:
    """Reject arguments other than the named ones."""
    allowed = frozenset(names)

    def check(arguments: Arguments) -> None:
        unexpected = sorted(set(arguments) - allowed)
        if unexpected:
            raise CommandValidationError(f"Unexpected arguments: {', '.join(unexpected)}")

    return check


def in_range(
    name: str,
    low: float | None = None,
    high: float | None = None,
    *,
    integer: bool = False,
) -> Validator:
    """Check that an argument, if given, is a number within ``[low, high]``.

    Args:
        name: Argument name.
        low: Inclusive lower bound, or None.
        high: Inclusive upper bound, or None.
        integer: Require an ``int``.
    """

    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if value is None:
            return
        kinds: tuple[type, ...] = (int,) if integer else (int, float)
        if isinstance(value, bool) or not isinstance(value, kinds):
            kind = "an integer" if integer else "a number"
            raise CommandValidationError(f"{name} must be {kind}, got {value!r}")
        if low is not None and value < low:
            raise CommandValidationError(f"{name} must be >= {low}, got {value}")
        if high is not None and value > high:
            raise CommandValidationError(f"{name} must be <= {high}, got {value}")

    return check


def one_of(name: str, choices: type[Enum] | Iterable[Any]) -> Validator:
    """Check that an argument, if given, is one of *choices*.

    Args:
        name: Argument name.
        choices: An Enum class (members are accepted) or an explicit
            collection of allowed values.
    """
    if isinstance(choices, type) and issubclass(choices, Enum):
        enum_type = choices

        def check_enum(arguments: Arguments) -> None:
            value = arguments.get(name)
            if value is not None and not isinstance(value, enum_type):
                raise CommandValidationError(
                    f"{name} must be a {enum_type.__name__}, got {value!r}"
                )

        check_enum.enum_argument = (name, enum_type)  # type: ignore[attr-defined]
        return check_enum

    allowed = tuple(choices)

    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if value is not None and value not in allowed:
            raise CommandValidationError(f"{name} must be one of {allowed}, got {value!r}")

    return check


def is_bool(name: str) -> Validator:
    """Check that an argument, if given, is a bool."""

    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if value is not None and not isinstance(value, bool):
            raise CommandValidationError(f"{name} must be a bool, got {value!r}")

    return check


def is_text(name: str, max_length: int | None = None) -> Validator:
    """Check that an argument, if given, is a string of bounded length."""

    def check(arguments: Arguments) -> None:
        value = arguments.get(name)
        if value is None:
            return
        if not isinstance(value, str):
            raise CommandValidationError(f"{name} must be a string, got {value!r}")
        if max_length is not None and len(value) > max_length:
            raise CommandValidationError(
                f"{name} must be at most {max_length} characters, got {len(value)}"
            )

    return check


def coerce_arguments(handler: OpcodeHandler, arguments: Mapping[str, Any]) -> dict[str, Any]:
    """Convert enum member names to members for text-based front ends.

    Arguments checked by a :func:`one_of` validator over an Enum accept the
    member name (case-insensitive) in place of the member.

    Raises:
        CommandValidationError: If a name matches no member.
    """
    coerced = dict(arguments)
    for validator in handler.validators:
        enum_argument = getattr(validator, "enum_argument", None)
        if enum_argument is None:
            continue
        name, enum_type = enum_argument
        value = coerced.get(name)
        if isinstance(value, str):
            try:
                coerced[name] = enum_type[value.upper()]
            except KeyError:
                members = ", ".join(member.name for member in enum_type)
                raise CommandValidationError(
                    f"{name} must be one of {members}, got {value!r}"
                ) from None
    return coerced
