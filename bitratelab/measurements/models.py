"""Shared dataclasses for measurements."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


class ConnectionType(str, Enum):
    WIFI = "wifi"
    MOBILE_5G = "mobile_5g"
    MOBILE_4G = "mobile_4g"
    MOBILE_3G = "mobile_3g"
    MOBILE_2G = "mobile_2g"
    ETHERNET = "ethernet"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SpeedSample:
    timestamp_ms: int
    speed_mbps: float  # 0.0 means the probe failed or timed out

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp_ms": self.timestamp_ms, "speed_mbps": self.speed_mbps}


@dataclass(frozen=True)
class LatencySample:
    timestamp_ms: int
    latency_ms: int  # 1000 when the probe failed or timed out

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp_ms": self.timestamp_ms, "latency_ms": self.latency_ms}


STABILITY_DETAILS = {
    "Excellent": "Very stable connection with consistent performance",
    "Very Good": "Stable connection with minimal fluctuations",
    "Good": "Generally stable with occasional variations",
    "Fair": "Acceptable stability for most streaming scenarios",
    "Moderate": "Some instability, suitable for lower quality streams",
    "Poor": "Unstable with multiple connection spikes detected",
    "Critical": "Highly unstable connection not recommended for streaming",
}


@dataclass(frozen=True)
class ConnectionReport:
    test_duration_seconds: int
    speed_samples: Tuple[SpeedSample, ...]
    latency_samples: Tuple[LatencySample, ...]
    has_spikes: bool
    spike_count: int
    stability_score: float
    stability_description: str
    average_speed: float
    min_speed: float
    max_speed: float
    speed_variation_pct: float

    @property
    def stability_details(self) -> str:
        return STABILITY_DETAILS.get(self.stability_description, "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_duration_seconds": self.test_duration_seconds,
            "speed_samples": [sample.to_dict() for sample in self.speed_samples],
            "latency_samples": [sample.to_dict() for sample in self.latency_samples],
            "has_spikes": self.has_spikes,
            "spike_count": self.spike_count,
            "stability_score": self.stability_score,
            "stability_description": self.stability_description,
            "stability_details": self.stability_details,
            "average_speed": self.average_speed,
            "min_speed": self.min_speed,
            "max_speed": self.max_speed,
            "speed_variation_pct": self.speed_variation_pct,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionReport":
        return cls(
            test_duration_seconds=int(data.get("test_duration_seconds", 0)),
            speed_samples=tuple(
                SpeedSample(int(item["timestamp_ms"]), float(item["speed_mbps"]))
                for item in data.get("speed_samples", [])
            ),
            latency_samples=tuple(
                LatencySample(int(item["timestamp_ms"]), int(item["latency_ms"]))
                for item in data.get("latency_samples", [])
            ),
            has_spikes=bool(data.get("has_spikes", False)),
            spike_count=int(data.get("spike_count", 0)),
            stability_score=float(data.get("stability_score", 0.0)),
            stability_description=str(data.get("stability_description", "")),
            average_speed=float(data.get("average_speed", 0.0)),
            min_speed=float(data.get("min_speed", 0.0)),
            max_speed=float(data.get("max_speed", 0.0)),
            speed_variation_pct=float(data.get("speed_variation_pct", 0.0)),
        )


def empty_report() -> ConnectionReport:
    """Report placeholder for results built outside a test run."""
    return ConnectionReport(
        test_duration_seconds=0,
        speed_samples=(),
        latency_samples=(),
        has_spikes=False,
        spike_count=0,
        stability_score=0.0,
        stability_description="",
        average_speed=0.0,
        min_speed=0.0,
        max_speed=0.0,
        speed_variation_pct=0.0,
    )


@dataclass(frozen=True)
class NetworkTestResult:
    download_mbps: float
    upload_mbps: float
    latency_ms: int
    jitter_ms: float
    packet_loss_pct: float
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    is_stable: bool = False
    connection_report: ConnectionReport = field(default_factory=empty_report)

    def __post_init__(self) -> None:
        if self.download_mbps < 0:
            raise ValueError(f"download_mbps must be >= 0, got {self.download_mbps}")
        if not 0.0 <= self.packet_loss_pct <= 100.0:
            raise ValueError(f"packet_loss_pct must be within [0, 100], got {self.packet_loss_pct}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "download_mbps": self.download_mbps,
            "upload_mbps": self.upload_mbps,
            "latency_ms": self.latency_ms,
            "jitter_ms": self.jitter_ms,
            "packet_loss_pct": self.packet_loss_pct,
            "connection_type": self.connection_type.value,
            "is_stable": self.is_stable,
            "connection_report": self.connection_report.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkTestResult":
        report_data = data.get("connection_report")
        return cls(
            download_mbps=float(data["download_mbps"]),
            upload_mbps=float(data["upload_mbps"]),
            latency_ms=int(data["latency_ms"]),
            jitter_ms=float(data.get("jitter_ms", 0.0)),
            packet_loss_pct=float(data.get("packet_loss_pct", 0.0)),
            connection_type=ConnectionType(data.get("connection_type", ConnectionType.UNKNOWN.value)),
            is_stable=bool(data.get("is_stable", False)),
            connection_report=ConnectionReport.from_dict(report_data) if report_data else empty_report(),
        )


def speeds_of(samples: List[SpeedSample]) -> List[float]:
    return [sample.speed_mbps for sample in samples]


def latencies_of(samples: List[LatencySample]) -> List[float]:
    return [float(sample.latency_ms) for sample in samples]
