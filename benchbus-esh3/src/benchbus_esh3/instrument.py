"""R&S ESH-3 instrument facade and factory."""

from __future__ import annotations

from benchbus_gpib.instrument import Instrument
from benchbus_gpib.transport import GpibTransport
from benchbus_gpib.visa import VisaGpibResource, parse_gpib_address
from benchbus_esh3.driver import Esh3Driver
from benchbus_esh3.emulator import Esh3Emulator
from benchbus_esh3.settings import (
    DataOutputMode,
    Esh3Settings,
    IfBandwidth,
    IndicatingMode,
)


class Esh3(Instrument):
    """R&S ESH-3 test receiver with typed convenience methods.

    Args:
        transport: An open transport to the receiver.
        driver: The driver; a default :class:`Esh3Driver` if omitted.
        timeout_s: Default bus token wait for commands.
        poll_period_s: Service-request poll period, or None.
    """

    def __init__(
        self,
        transport: GpibTransport,
        driver: Esh3Driver | None = None,
        *,
        timeout_s: float = 10.0,
        poll_period_s: float | None = 1.0,
    ) -> None:
        super().__init__(
            transport,
            driver if driver is not None else Esh3Driver(),
            timeout_s=timeout_s,
            poll_period_s=poll_period_s,
        )

    @property
    def settings(self) -> Esh3Settings | None:
        return self.engine.settings

    def set_frequency(self, frequency_hz: float) -> None:
        """Tune the receiver; the frequency is clamped to 9 kHz..29.9999 MHz."""
        self.execute("frequency", frequency_hz=frequency_hz)

    def set_if_bandwidth(self, bandwidth: IfBandwidth) -> None:
        self.execute("if_bandwidth", mode=bandwidth)

    def set_indicating_mode(self, mode: IndicatingMode) -> None:
        self.execute("indicating_mode", mode=mode)

    def set_data_output_mode(self, mode: DataOutputMode) -> None:
        self.execute("data_output_mode", mode=mode)

    def set_measurement_time(self, time_s: float) -> None:
        self.execute("measurement_time", time_s=time_s)

    def display(self, text: str) -> None:
        """Show up to 13 characters on the front panel."""
        self.execute("display_text", text=text)

    def trigger(self) -> None:
        self.execute("trigger")

    def refresh(self) -> None:
        """Write the whole known configuration back to the receiver."""
        self.execute("refresh")


def create_instrument(
    resource: str,
    *,
    timeout_ms: int = 5000,
    poll_period_s: float | None = 1.0,
    settle_s: float = 0.0,
    timeout_s: float = 10.0,
    emulate: bool = False,
) -> Esh3:
    """Create an ESH-3 from a VISA resource string.

    Args:
        resource: VISA resource string (e.g. ``"GPIB0::19::INSTR"``).
        timeout_ms: Transport I/O timeout in milliseconds.
        poll_period_s: Service-request poll period, or None.
        settle_s: Delay after device clear during initialization.
        timeout_s: Default bus token wait for commands.
        emulate: Use an in-process emulator instead of VISA.

    Returns:
        The instrument facade, not yet opened.
    """
    transport: GpibTransport
    if emulate:
        transport = Esh3Emulator()
    else:
        visa = VisaGpibResource(resource, timeout_ms=timeout_ms)
        visa.open()
        transport = visa
    driver = Esh3Driver(gpib_address=parse_gpib_address(resource), settle_s=settle_s)
    return Esh3(transport, driver, timeout_s=timeout_s, poll_period_s=poll_period_s)
