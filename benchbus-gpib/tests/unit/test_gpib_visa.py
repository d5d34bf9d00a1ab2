"""Tests for VisaGpibResource with a mocked pyvisa module."""

from __future__ import annotations

import logging
import sys
from unittest.mock import MagicMock, patch

import pytest

from benchbus_core import BenchbusError, TransportError, TransportTimeoutError
from benchbus_gpib import VisaGpibResource, parse_gpib_address

RESOURCE = "GPIB0::22::INSTR"

_ERROR_TIMEOUT = -1073807339
_ERROR_NLISTENERS = -1073807265


class _VisaIOError(Exception):
    def __init__(self, error_code: int) -> None:
        super().__init__(f"VISA error {error_code}")
        self.error_code = error_code


def _make_mock_pyvisa() -> MagicMock:
    """Create a mock pyvisa module with ResourceManager and error types."""
    mock_pyvisa = MagicMock()
    mock_rm = MagicMock()
    mock_resource = MagicMock()
    mock_rm.open_resource.return_value = mock_resource
    mock_pyvisa.ResourceManager.return_value = mock_rm
    mock_pyvisa.errors.VisaIOError = _VisaIOError
    mock_pyvisa.constants.StatusCode.error_timeout = _ERROR_TIMEOUT
    return mock_pyvisa


def _open(timeout_ms: int = 5000) -> tuple[VisaGpibResource, MagicMock]:
    mock_pyvisa = _make_mock_pyvisa()
    visa = VisaGpibResource(RESOURCE, timeout_ms=timeout_ms)
    with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
        visa.open()
    return visa, mock_pyvisa.ResourceManager.return_value.open_resource.return_value


# ---------------------------------------------------------------------------
# Resource strings
# ---------------------------------------------------------------------------


class TestParseGpibAddress:
    @pytest.mark.parametrize(
        "resource, address",
        [
            ("GPIB0::22::INSTR", 22),
            ("gpib::7", 7),
            ("GPIB1::3::5::INSTR", 3),
            (" GPIB0::19::INSTR ", 19),
            ("TCPIP::192.168.1.1::INSTR", None),
            ("GPIB0::INTFC", None),
        ],
    )
    def test_parse(self, resource: str, address: int | None) -> None:
        assert parse_gpib_address(resource) == address


# ---------------------------------------------------------------------------
# open / close lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_open_sets_timeout(self) -> None:
        visa, resource = _open(timeout_ms=2500)
        assert visa.is_open
        assert visa.resource_string == RESOURCE
        assert resource.timeout == 2500

    def test_open_idempotent(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaGpibResource(RESOURCE)
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
            visa.open()
        mock_pyvisa.ResourceManager.assert_called_once()

    def test_open_without_pyvisa(self) -> None:
        visa = VisaGpibResource(RESOURCE)
        with patch.dict(sys.modules, {"pyvisa": None}):
            with pytest.raises(BenchbusError, match="pyvisa"):
                visa.open()
        assert not visa.is_open

    def test_open_failure_closes_manager(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        mock_rm = mock_pyvisa.ResourceManager.return_value
        mock_rm.open_resource.side_effect = OSError("no such device")
        visa = VisaGpibResource(RESOURCE)
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            with pytest.raises(TransportError, match="no such device"):
                visa.open()
        assert not visa.is_open
        mock_rm.close.assert_called_once()

    def test_close(self) -> None:
        visa, resource = _open()
        visa.close()
        visa.close()
        assert not visa.is_open
        resource.close.assert_called_once()

    def test_close_error_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        visa, resource = _open()
        resource.close.side_effect = _VisaIOError(_ERROR_NLISTENERS)
        with caplog.at_level(logging.DEBUG, logger="benchbus_gpib.visa"):
            visa.close()
        assert not visa.is_open
        assert "Error closing" in caplog.text


# ---------------------------------------------------------------------------
# Transport operations
# ---------------------------------------------------------------------------


class TestOperations:
    def test_requires_open(self) -> None:
        visa = VisaGpibResource(RESOURCE)
        with pytest.raises(TransportError):
            visa.write(b"ID?;")
        with pytest.raises(TransportError):
            visa.serial_poll()

    def test_write_is_raw(self) -> None:
        visa, resource = _open()
        visa.write(b"DCV;")
        resource.write_raw.assert_called_once_with(b"DCV;")

    def test_read_until_eoi(self) -> None:
        visa, resource = _open()
        resource.read_raw.return_value = b"+1.0E+00\r\n"
        assert visa.read_until_eoi() == b"+1.0E+00\r\n"

    def test_read_timeout_override_is_restored(self) -> None:
        visa, resource = _open(timeout_ms=5000)
        seen: list[int] = []

        def read_raw() -> bytes:
            seen.append(resource.timeout)
            return b"1\r\n"

        resource.read_raw.side_effect = read_raw
        visa.read_until_eoi(timeout_s=0.25)
        assert seen == [250]
        assert resource.timeout == 5000

    def test_timeout_maps_to_timeout_error(self) -> None:
        visa, resource = _open()
        resource.read_raw.side_effect = _VisaIOError(_ERROR_TIMEOUT)
        with pytest.raises(TransportTimeoutError):
            visa.read_until_eoi()

    def test_other_errors_map_to_transport_error(self) -> None:
        visa, resource = _open()
        resource.write_raw.side_effect = _VisaIOError(_ERROR_NLISTENERS)
        with pytest.raises(TransportError) as excinfo:
            visa.write(b"X")
        assert not isinstance(excinfo.value, TransportTimeoutError)
        assert RESOURCE in str(excinfo.value)

    def test_serial_poll_masks_status_byte(self) -> None:
        visa, resource = _open()
        resource.read_stb.return_value = 0x150
        assert visa.serial_poll() == 0x50

    def test_device_clear(self) -> None:
        visa, resource = _open()
        visa.device_clear()
        resource.clear.assert_called_once_with()
        resource.clear.side_effect = _VisaIOError(_ERROR_TIMEOUT)
        with pytest.raises(TransportTimeoutError):
            visa.device_clear()
