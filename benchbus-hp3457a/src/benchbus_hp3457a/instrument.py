"""HP 3457A instrument facade and factory."""

from __future__ import annotations

from concurrent.futures import Future

from benchbus_gpib.instrument import Instrument
from benchbus_gpib.ranges import Range
from benchbus_gpib.reading import ReadingFormat
from benchbus_gpib.transport import GpibTransport
from benchbus_gpib.visa import VisaGpibResource, parse_gpib_address
from benchbus_hp3457a.calibration import CalibrationData
from benchbus_hp3457a.driver import DEFAULT_SETTLE_S, Hp3457aDriver
from benchbus_hp3457a.emulator import Hp3457aEmulator
from benchbus_hp3457a.settings import (
    AutoCalibrationType,
    Hp3457aSettings,
    MeasurementMode,
    ReadingMemoryMode,
    TriggerEvent,
)


class Hp3457a(Instrument):
    """HP 3457A multimeter with typed convenience methods.

    Every method is a thin wrapper around :meth:`Instrument.execute`; any
    opcode of the command table remains available through ``execute`` and
    ``enqueue``.

    Args:
        transport: An open transport to the meter.
        driver: The driver; a default :class:`Hp3457aDriver` if omitted.
        timeout_s: Default bus token wait for commands.
        poll_period_s: Service-request poll period, or None.
    """

    def __init__(
        self,
        transport: GpibTransport,
        driver: Hp3457aDriver | None = None,
        *,
        timeout_s: float = 10.0,
        poll_period_s: float | None = 1.0,
    ) -> None:
        super().__init__(
            transport,
            driver if driver is not None else Hp3457aDriver(),
            timeout_s=timeout_s,
            poll_period_s=poll_period_s,
        )

    @property
    def settings(self) -> Hp3457aSettings | None:
        """The current settings snapshot, or None before :meth:`open`."""
        return self.engine.settings

    # -- Function and range --------------------------------------------------

    def set_measurement_mode(self, mode: MeasurementMode) -> None:
        """Select the measurement function; auto-range is re-enabled."""
        self.execute("measurement_mode", mode=mode)

    def set_range(self, candidate: Range) -> Range | None:
        """Select a fixed range.

        Returns:
            The range the meter reports, or None if it is out of the table.
        """
        result: Range | None = self.execute("range", range=candidate)
        return result

    def set_auto_range(self, enabled: bool = True) -> None:
        self.execute("set_auto_range", enabled=enabled)

    def set_nplc(self, nplc: float) -> None:
        """Set the integration time in power-line cycles."""
        self.execute("set_nplc", nplc=nplc)

    # -- Triggering and memory ----------------------------------------------

    def set_trigger_event(self, event: TriggerEvent) -> None:
        self.execute("set_trigger_event", event=event)

    def set_reading_memory(self, mode: ReadingMemoryMode) -> None:
        self.execute("set_reading_memory", mode=mode)

    def set_output_format(self, fmt: ReadingFormat) -> None:
        """Select the reading format; a change clears the reading memory."""
        self.execute("set_output_format", format=fmt)

    def trigger(self) -> None:
        self.execute("trigger")

    # -- Calibration ---------------------------------------------------------

    def auto_calibrate_async(self) -> Future[None]:
        """Queue a full auto-calibration; it takes the meter minutes."""
        return self.enqueue("auto_calibrate", calibration=AutoCalibrationType.ALL)

    def read_calibration_data(self) -> CalibrationData:
        """Dump the calibration RAM."""
        data: CalibrationData = self.execute("read_calibration_data")
        return data


def create_instrument(
    resource: str,
    *,
    timeout_ms: int = 5000,
    poll_period_s: float | None = 1.0,
    settle_s: float = DEFAULT_SETTLE_S,
    timeout_s: float = 10.0,
    emulate: bool = False,
) -> Hp3457a:
    """Create an HP 3457A from a VISA resource string.

    Standard factory entry point for bench files and programmatic use. The
    returned instrument is not yet initialized; call :meth:`Hp3457a.open`
    or use it as a context manager.

    Args:
        resource: VISA resource string (e.g. ``"GPIB0::22::INSTR"``).
        timeout_ms: Transport I/O timeout in milliseconds.
        poll_period_s: Service-request poll period, or None.
        settle_s: Delay after device clear during initialization.
        timeout_s: Default bus token wait for commands.
        emulate: Use an in-process emulator instead of VISA.

    Returns:
        The instrument facade.
    """
    transport: GpibTransport
    if emulate:
        transport = Hp3457aEmulator()
    else:
        visa = VisaGpibResource(resource, timeout_ms=timeout_ms)
        visa.open()
        transport = visa
    driver = Hp3457aDriver(gpib_address=parse_gpib_address(resource), settle_s=settle_s)
    return Hp3457a(transport, driver, timeout_s=timeout_s, poll_period_s=poll_period_s)
