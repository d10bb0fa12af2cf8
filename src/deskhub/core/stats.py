"""Container resource stats normalization.

Turns one non-streaming Docker stats sample (GET /containers/{id}/stats?stream=false)
into percentage and megabyte metrics.

Note:
    disk_usage is always 0. The stats endpoint does not report filesystem usage,
    so it cannot be derived from this source.
"""

from dataclasses import asdict, dataclass

_MIB = 1024 * 1024


@dataclass(frozen=True)
class ContainerStats:
    """Point-in-time resource snapshot of a workspace container."""

    cpu_usage: float  # percent
    memory_usage: float  # percent of limit
    disk_usage: float  # percent (always 0, see module docstring)
    network_in: float  # MiB received, all interfaces
    network_out: float  # MiB transmitted, all interfaces

    @classmethod
    def zero(cls) -> "ContainerStats":
        """Substitute snapshot used when stats cannot be read."""
        return cls(
            cpu_usage=0.0,
            memory_usage=0.0,
            disk_usage=0.0,
            network_in=0.0,
            network_out=0.0,
        )

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def _cpu_percent(raw: dict) -> float:
    cpu = raw.get("cpu_stats") or {}
    precpu = raw.get("precpu_stats") or {}

    cpu_delta = (cpu.get("cpu_usage") or {}).get("total_usage", 0) - (
        precpu.get("cpu_usage") or {}
    ).get("total_usage", 0)
    system_delta = cpu.get("system_cpu_usage", 0) - precpu.get("system_cpu_usage", 0)

    # First sample has no previous reading
    if system_delta <= 0:
        return 0.0
    return cpu_delta / system_delta * 100


def _memory_percent(raw: dict) -> float:
    memory = raw.get("memory_stats") or {}
    limit = memory.get("limit") or 0
    if limit <= 0:
        return 0.0
    return memory.get("usage", 0) / limit * 100


def _network_mib(raw: dict) -> tuple[float, float]:
    rx_bytes = 0
    tx_bytes = 0
    for iface in (raw.get("networks") or {}).values():
        rx_bytes += iface.get("rx_bytes", 0)
        tx_bytes += iface.get("tx_bytes", 0)
    return rx_bytes / _MIB, tx_bytes / _MIB


def compute_stats(raw: dict) -> ContainerStats:
    """Normalize a raw Docker stats sample.

    Args:
        raw: Decoded JSON body of the Docker stats endpoint

    Returns:
        ContainerStats with every value rounded to two decimals
    """
    network_in, network_out = _network_mib(raw)
    return ContainerStats(
        cpu_usage=round(_cpu_percent(raw), 2),
        memory_usage=round(_memory_percent(raw), 2),
        disk_usage=0.0,
        network_in=round(network_in, 2),
        network_out=round(network_out, 2),
    )
