"""Tests for the HP 3457A settings snapshot, status and ranges."""

from __future__ import annotations

import dataclasses
import math

import pytest

from benchbus_core import Resolution, Unit
from benchbus_gpib import Range
from benchbus_hp3457a import (
    RANGES,
    AuxiliaryErrorFlag,
    ErrorFlag,
    Hp3457aSettings,
    Hp3457aStatus,
    InstalledOption,
    MeasurementMode,
    TriggerEvent,
    nplc_to_resolution,
)
from benchbus_hp3457a.ranges import RANGEABLE_MODES

# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestNplcToResolution:
    @pytest.mark.parametrize(
        "nplc, expected",
        [
            (0.0, Resolution.DIGITS_3_5),
            (0.004, Resolution.DIGITS_3_5),
            (0.005, Resolution.DIGITS_4_5),
            (0.099, Resolution.DIGITS_4_5),
            (0.1, Resolution.DIGITS_5_5),
            (0.999, Resolution.DIGITS_5_5),
            (1.0, Resolution.DIGITS_6_5),
            (100.0, Resolution.DIGITS_6_5),
        ],
    )
    def test_thresholds(self, nplc: float, expected: Resolution) -> None:
        assert nplc_to_resolution(nplc) is expected

    @pytest.mark.parametrize("nplc", [-0.1, 100.5, math.nan])
    def test_out_of_domain(self, nplc: float) -> None:
        with pytest.raises(ValueError):
            nplc_to_resolution(nplc)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TestSettings:
    def test_reset_defaults(self) -> None:
        settings = Hp3457aSettings.from_reset()
        assert settings.measurement_mode is MeasurementMode.DC_VOLTAGE
        assert settings.auto_range is True
        assert settings.range is None
        assert settings.trigger_event is TriggerEvent.AUTO
        assert math.isnan(settings.delay_s)
        assert settings.id is None

    def test_preset_differs_in_trigger_and_nplc(self) -> None:
        preset = Hp3457aSettings.from_preset()
        assert preset.trigger_event is TriggerEvent.SYN
        assert preset.nplc == 1.0
        assert dataclasses.replace(preset, trigger_event=TriggerEvent.AUTO, nplc=10.0) == (
            Hp3457aSettings.from_reset()
        )

    def test_frozen(self) -> None:
        settings = Hp3457aSettings()
        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.nplc = 1.0  # type: ignore[misc]

    def test_derive_unchanged_keeps_identity(self) -> None:
        settings = Hp3457aSettings()
        assert settings.derive(nplc=10.0, delay_s=math.nan) is settings

    def test_derive_bumps_version(self) -> None:
        settings = Hp3457aSettings()
        derived = settings.derive(eoi=True)
        assert derived.version == settings.version + 1
        assert settings.eoi is False

    def test_mode_change_enables_auto_range(self) -> None:
        settings = Hp3457aSettings(auto_range=False, range=Range(3.0, Unit.VOLT))
        derived = settings.with_measurement_mode(MeasurementMode.RESISTANCE_2W)
        assert derived.auto_range is True
        assert derived.range is None
        assert derived.reading_unit is Unit.OHM
        assert derived.reading_quantity == "RESISTANCE_2W"

    def test_same_mode_is_unchanged(self) -> None:
        settings = Hp3457aSettings(auto_range=False, range=Range(3.0, Unit.VOLT))
        assert settings.with_measurement_mode(MeasurementMode.DC_VOLTAGE) is settings

    def test_nplc_sets_resolution(self) -> None:
        derived = Hp3457aSettings().with_nplc(0.05)
        assert derived.nplc == 0.05
        assert derived.reading_resolution is Resolution.DIGITS_4_5

    def test_reset_keeps_unit_facts(self) -> None:
        settings = Hp3457aSettings(
            id="HP3457A",
            installed_option=InstalledOption.HP_44491,
            gpib_address=22,
            calibration_number=7,
            line_frequency_hz=60.0,
            eoi=True,
            nplc=0.5,
        )
        derived = settings.with_reset(Hp3457aSettings.from_preset())
        assert derived.id == "HP3457A"
        assert derived.installed_option is InstalledOption.HP_44491
        assert derived.gpib_address == 22
        assert derived.calibration_number == 7
        assert derived.line_frequency_hz == 60.0
        assert derived.eoi is False
        assert derived.nplc == 1.0
        assert derived.version == settings.version + 1


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class TestRanges:
    def test_classify_smallest_covering(self) -> None:
        assert RANGES.classify(MeasurementMode.DC_VOLTAGE, 2.5) == Range(3.0, Unit.VOLT)
        assert RANGES.classify(MeasurementMode.DC_VOLTAGE, -0.02) == Range(0.03, Unit.VOLT)
        assert RANGES.classify(MeasurementMode.DC_VOLTAGE, 301.0) is None

    def test_echoed_full_scale(self) -> None:
        assert RANGES.classify(MeasurementMode.DC_CURRENT, 3.0000000001e-3) == Range(
            3e-3, Unit.AMPERE
        )

    def test_frequency_is_not_rangeable(self) -> None:
        assert MeasurementMode.FREQUENCY not in RANGEABLE_MODES
        assert MeasurementMode.AC_CURRENT in RANGEABLE_MODES

    def test_str(self) -> None:
        assert str(Range(30e3, Unit.OHM)) == "30000 Ω"


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class TestStatus:
    def test_flags(self) -> None:
        status = Hp3457aStatus.from_status_byte(0x72)
        assert status.service_request
        assert status.error
        assert status.ready
        assert status.high_low
        assert not status.power_on
        assert not status.program_complete
        assert status.needs_error_query
        assert not status.needs_auxiliary_error_query

    def test_status_byte_is_masked(self) -> None:
        assert Hp3457aStatus.from_status_byte(0x1FF).status_byte == 0xFF

    def test_hardware_error_needs_auxiliary_query(self) -> None:
        status = Hp3457aStatus.from_status_byte(0x20).with_error_code(0x0009)
        assert status.needs_auxiliary_error_query
        assert status.errors == ErrorFlag.HARDWARE | ErrorFlag.SYNTAX

    def test_messages(self) -> None:
        status = (
            Hp3457aStatus.from_status_byte(0x20)
            .with_error_code(int(ErrorFlag.HARDWARE))
            .with_auxiliary_error_code(int(AuxiliaryErrorFlag.NVRAM))
        )
        assert status.messages() == ["Hardware error", "Non-volatile RAM test failed"]

    def test_no_messages_before_escalation(self) -> None:
        status = Hp3457aStatus.from_status_byte(0x20)
        assert status.messages() == []
        assert not status.errors

    def test_str(self) -> None:
        status = Hp3457aStatus.from_status_byte(0x30).with_error_code(int(ErrorFlag.BAD_HEADER))
        assert str(status) == "0x30 [ERROR READY]: Unrecognizable command"
