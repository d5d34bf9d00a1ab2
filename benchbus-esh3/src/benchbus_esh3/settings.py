"""R&S ESH-3 settings snapshot and enumerations.

The ESH-3 cannot report its configuration over the bus, so the snapshot is
whatever the driver last told the receiver, starting from the power-on
state. Enumeration values are the numeric suffixes of the setting commands
(``B3`` selects :attr:`IfBandwidth.BW_500_HZ`).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from benchbus_gpib.settings import SettingsSnapshot

MIN_FREQUENCY_HZ = 9e3
MAX_FREQUENCY_HZ = 29.9999e6


def clamp_frequency(frequency_hz: float) -> float:
    """Clamp a frequency to the receiver's tuning range."""
    return max(MIN_FREQUENCY_HZ, min(MAX_FREQUENCY_HZ, frequency_hz))


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class AttenuationMode(Enum):
    """RF/IF attenuation control (``A1``, ``A2``).

    Manual attenuation has no command of its own; it is what the receiver
    does after explicit ``RA``/``IA`` settings.
    """

    MANUAL = 0
    AUTO_LOW_NOISE = 1
    AUTO_LOW_DISTORTION = 2


class IfBandwidth(Enum):
    """IF bandwidth (``B1`` .. ``B4``)."""

    BW_10_KHZ = 1
    BW_2400_HZ = 2
    BW_500_HZ = 3
    BW_200_HZ = 4

    @property
    def bandwidth_hz(self) -> float:
        return _BANDWIDTHS_HZ[self]


_BANDWIDTHS_HZ = {
    IfBandwidth.BW_10_KHZ: 10e3,
    IfBandwidth.BW_2400_HZ: 2.4e3,
    IfBandwidth.BW_500_HZ: 500.0,
    IfBandwidth.BW_200_HZ: 200.0,
}


class DemodulationMode(Enum):
    """Demodulator (``D0`` .. ``D6``)."""

    OFF = 0
    A0 = 1
    A1 = 2
    A3 = 3
    A3J_LSB = 4
    A3J_USB = 5
    F3 = 6


class OperatingRange(Enum):
    """Display operating range (``L1`` .. ``L3``)."""

    RANGE_20_DB = 1
    RANGE_40_DB = 2
    RANGE_60_DB = 3


class OperatingMode(Enum):
    """Tracking generator mode (``M0`` .. ``M2``)."""

    GENERATOR_OFF = 0
    REMOTE_FREQUENCY_MEASUREMENT = 1
    TWO_PORT_MEASUREMENT = 2


class IndicatingMode(Enum):
    """Level detector (``N1`` .. ``N4``)."""

    AVERAGE = 1
    PEAK = 2
    CISPR = 3
    MIL = 4


class DataOutputMode(Enum):
    """Level output unit (``O1`` .. ``O3``)."""

    DB = 1
    DBM = 2
    V_A = 3


class StepSizeMode(Enum):
    """Scan step mode (``SF52``, ``SF53``)."""

    LINEAR = 52
    LOGARITHMIC = 53


class FrequencyScanRepeatMode(Enum):
    """Scan repetition (``SF50``, ``SF51``)."""

    SINGLE_SCAN = 50
    AUTO_REPEAT = 51


class FrequencyScanSpeedMode(Enum):
    """Scan speed (``SF90``, ``SF91``)."""

    NORMAL = 90
    FAST = 91


class FieldDataOutputMode(Enum):
    """Field strength output with an antenna or probe (``SF80``, ``SF81``)."""

    E = 80
    H = 81


class RecorderXAxisMode(Enum):
    """Recorder frequency axis (``SF60``, ``SF61``)."""

    LINEAR = 60
    LOGARITHMIC = 61


class XYRecorderSpectrumMode(Enum):
    """XY recorder trace style (``SF70``, ``SF71``)."""

    POLYGONAL_CURVE = 70
    LINE_SPECTRUM = 71


# Special-function test flags cleared together by SF00.
TEST_FLAGS = (
    "test_level",
    "test_modulation_depth",
    "test_modulation_depth_positive_peak",
    "test_modulation_depth_negative_peak",
    "test_frequency_offset",
    "test_frequency_deviation",
    "test_frequency_deviation_positive_peak",
    "test_frequency_deviation_negative_peak",
)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Esh3Settings(SettingsSnapshot):
    """Known configuration of an ESH-3. Field defaults are the power-on state."""

    # Tuning and scan limits
    frequency_hz: float = 10e6
    frequency_start_hz: float = MIN_FREQUENCY_HZ
    frequency_stop_hz: float = MAX_FREQUENCY_HZ

    # Attenuation and IF
    attenuation_mode: AttenuationMode = AttenuationMode.AUTO_LOW_NOISE
    rf_attenuation_db: float = 0.0
    if_attenuation_db: float = 0.0
    linearity_test: bool = False
    if_bandwidth: IfBandwidth = IfBandwidth.BW_10_KHZ
    demodulation_mode: DemodulationMode = DemodulationMode.OFF

    # Measurement
    max_min_mode: bool = False
    operating_range: OperatingRange = OperatingRange.RANGE_40_DB
    operating_mode: OperatingMode = OperatingMode.GENERATOR_OFF
    indicating_mode: IndicatingMode = IndicatingMode.AVERAGE
    data_output_mode: DataOutputMode = DataOutputMode.DB
    measurement_time_s: float = 0.1

    # Scanning
    minimum_level_db: float = 0.0
    maximum_level_db: float = 120.0
    step_size_mode: StepSizeMode = StepSizeMode.LINEAR
    step_size_mhz: float = 0.01
    step_size_percent: float = 1.0
    frequency_scan_repeat_mode: FrequencyScanRepeatMode = FrequencyScanRepeatMode.SINGLE_SCAN
    frequency_scan_speed_mode: FrequencyScanSpeedMode = FrequencyScanSpeedMode.NORMAL

    # Special-function tests
    test_level: bool = False
    test_modulation_depth: bool = False
    test_modulation_depth_positive_peak: bool = False
    test_modulation_depth_negative_peak: bool = False
    test_frequency_offset: bool = False
    test_frequency_deviation: bool = False
    test_frequency_deviation_positive_peak: bool = False
    test_frequency_deviation_negative_peak: bool = False
    field_data_output_mode: FieldDataOutputMode = FieldDataOutputMode.E

    # Interface and front panel
    gpib_address: int | None = None
    eoi: bool = False
    srq_on_data_ready: bool = False
    srq_on_local: bool = False
    gpib_delimiter: int = 0
    display_text: str = ""

    # Recorder
    recorder_code: bool = False
    antenna_probe_code: bool = False
    recorder_x_axis_mode: RecorderXAxisMode = RecorderXAxisMode.LINEAR
    recorder_coding: bool = False
    no_yt_recorder: bool = False
    no_xy_recorder: bool = False
    no_zsg3_recorder: bool = False
    xy_recorder_spectrum_mode: XYRecorderSpectrumMode = XYRecorderSpectrumMode.POLYGONAL_CURVE

    @classmethod
    def power_on(cls) -> Esh3Settings:
        """Return the state after power-on."""
        return cls()

    def with_tests_cleared(self) -> Esh3Settings:
        """Clear every special-function test flag, as ``SF00`` does."""
        return self.derive(**{name: False for name in TEST_FLAGS})
