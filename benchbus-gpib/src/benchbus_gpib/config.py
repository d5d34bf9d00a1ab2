"""YAML configuration loading for instrument benches.

A bench file names the GPIB instruments on one bus, the driver factory for
each, and how to reach it.

Example YAML configuration:
    bench:
      id: "bench-a"
      description: "Front-end calibration bench"

    instruments:
      dmm:
        driver: "benchbus_hp3457a:create_instrument"
        resource: "GPIB0::22::INSTR"
        timeout_ms: 5000
        poll_period_s: 1.0
        kwargs:
          settle_s: 1.0
      slm:
        driver: "benchbus_esh3:create_instrument"
        resource: "GPIB0::7::INSTR"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_TIMEOUT_MS = 5000
DEFAULT_POLL_PERIOD_S = 1.0


@dataclass(frozen=True)
class InstrumentConfig:
    """Configuration for a single instrument on the bench.

    Attributes:
        name: Unique instrument name within the bench (e.g., "dmm").
        driver: Factory path in "module:function" format
            (e.g., "benchbus_hp3457a:create_instrument").
        resource: VISA resource string (e.g., "GPIB0::22::INSTR").
        timeout_ms: Transport I/O timeout in milliseconds.
        poll_period_s: Service-request poll period in seconds, or None to
            disable polling.
        kwargs: Additional keyword arguments passed to the factory.
    """

    name: str
    driver: str
    resource: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    poll_period_s: float | None = DEFAULT_POLL_PERIOD_S
    kwargs: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError(f"Instrument '{self.name}': timeout_ms must be > 0")
        if self.poll_period_s is not None and self.poll_period_s <= 0:
            raise ValueError(f"Instrument '{self.name}': poll_period_s must be > 0")

    def factory_kwargs(self) -> dict[str, Any]:
        """Return the keyword arguments for the driver factory."""
        return {
            "resource": self.resource,
            "timeout_ms": self.timeout_ms,
            "poll_period_s": self.poll_period_s,
            **self.kwargs,
        }


@dataclass(frozen=True)
class BenchConfig:
    """Configuration for an instrument bench.

    Attributes:
        bench_id: Unique identifier for this bench.
        description: Human-readable description.
        instruments: Instrument configurations, in file order.
    """

    bench_id: str
    description: str
    instruments: tuple[InstrumentConfig, ...]

    def get_instrument(self, name: str) -> InstrumentConfig:
        """Return the instrument named *name*.

        Raises:
            KeyError: If no such instrument is configured.
        """
        for instrument in self.instruments:
            if instrument.name == name:
                return instrument
        raise KeyError(f"No instrument named '{name}' in bench '{self.bench_id}'")


def load_config(path: str | Path) -> BenchConfig:
    """Load bench configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed bench configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config is invalid or missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")

    bench_section = data.get("bench", {})
    bench_id = bench_section.get("id")
    if not bench_id:
        raise ValueError("Missing required field: bench.id")
    description = bench_section.get("description", "")

    instruments_data = data.get("instruments", {})
    if not isinstance(instruments_data, dict):
        raise ValueError("instruments must be a mapping")

    instruments: list[InstrumentConfig] = []
    for name, inst_data in instruments_data.items():
        if not isinstance(inst_data, dict):
            raise ValueError(f"Instrument '{name}' must be a mapping")

        driver = inst_data.get("driver")
        if not driver:
            raise ValueError(f"Instrument '{name}' missing required field: driver")
        resource = inst_data.get("resource")
        if not resource:
            raise ValueError(f"Instrument '{name}' missing required field: resource")

        kwargs = inst_data.get("kwargs", {})
        if not isinstance(kwargs, dict):
            raise ValueError(f"Instrument '{name}' kwargs must be a mapping")

        instruments.append(
            InstrumentConfig(
                name=name,
                driver=driver,
                resource=resource,
                timeout_ms=int(inst_data.get("timeout_ms", DEFAULT_TIMEOUT_MS)),
                poll_period_s=inst_data.get("poll_period_s", DEFAULT_POLL_PERIOD_S),
                kwargs=kwargs,
            )
        )

    return BenchConfig(
        bench_id=bench_id,
        description=description,
        instruments=tuple(instruments),
    )
