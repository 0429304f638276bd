"""Connection stability statistics computed from collected samples.

Everything in this module is pure: it takes the sample series produced by the
probe scheduler plus the one-shot upload/packet-loss figures and derives the
:class:`ConnectionReport` and :class:`NetworkTestResult`. No I/O happens here.
"""

from __future__ import annotations

import logging
from statistics import fmean, pstdev
from typing import List, Sequence, Tuple

from .models import (
    ConnectionReport,
    ConnectionType,
    LatencySample,
    NetworkTestResult,
    SpeedSample,
    latencies_of,
    speeds_of,
)

LOGGER = logging.getLogger(__name__)

# Used in place of the average speed when every download sample failed
MIN_AVERAGE_SPEED_MBPS = 0.1


def summarize_speeds(samples: Sequence[SpeedSample]) -> Tuple[float, float, float]:
    """Return (average, minimum, maximum) over the successful speed samples."""
    valid = [sample.speed_mbps for sample in samples if sample.speed_mbps > 0.0]
    if not valid:
        return MIN_AVERAGE_SPEED_MBPS, MIN_AVERAGE_SPEED_MBPS, MIN_AVERAGE_SPEED_MBPS
    return fmean(valid), min(valid), max(valid)


def average_latency(samples: Sequence[LatencySample]) -> int:
    # Timeout sentinels are included.
    if not samples:
        return 0
    return int(fmean(latencies_of(list(samples))))


def calculate_jitter(samples: Sequence[LatencySample]) -> float:
    """Population standard deviation of the latency series."""
    if len(samples) < 2:
        return 0.0
    return pstdev(latencies_of(list(samples)))


def detect_spikes(samples: Sequence[SpeedSample]) -> Tuple[bool, int]:
    """Count speed samples lying two or more standard deviations from the mean.

    The raw series is used, failed (0.0) probes included.
    """
    if len(samples) < 3:
        return False, 0

    speeds = speeds_of(list(samples))
    mean = fmean(speeds)
    std_dev = pstdev(speeds, mu=mean)
    if std_dev == 0.0:
        return False, 0

    spike_count = sum(1 for speed in speeds if abs(speed - mean) >= 2 * std_dev)
    return spike_count > 0, spike_count


def _coefficient_of_variation(values: List[float]) -> float:
    mean = fmean(values)
    if mean <= 0:
        return 1.0
    return pstdev(values, mu=mean) / mean


def calculate_stability_score(
    speed_samples: Sequence[SpeedSample],
    latency_samples: Sequence[LatencySample],
) -> float:
    """Composite 0..1 score, 1.0 meaning a perfectly steady and fast link.

    - speed consistency costs up to 0.4 (coefficient of variation x 0.4)
    - latency consistency costs up to 0.3 (coefficient of variation x 0.3)
    - a mean speed under 1 Mbps costs 0.2
    - a mean latency over 200 ms costs 0.1
    """
    if not speed_samples or not latency_samples:
        return 0.0

    speeds = speeds_of(list(speed_samples))
    latencies = latencies_of(list(latency_samples))

    score = 1.0
    score -= _coefficient_of_variation(speeds) * 0.4
    score -= _coefficient_of_variation(latencies) * 0.3

    if fmean(speeds) < 1.0:
        score -= 0.2
    if fmean(latencies) > 200:
        score -= 0.1

    return max(0.0, min(1.0, score))


def describe_stability(stability_score: float, spike_count: int) -> str:
    if stability_score > 0.85 and spike_count == 0:
        return "Excellent"
    if stability_score > 0.75 and spike_count <= 1:
        return "Very Good"
    if stability_score > 0.65 and spike_count <= 2:
        return "Good"
    if stability_score > 0.50 and spike_count <= 3:
        return "Fair"
    if stability_score > 0.35:
        return "Moderate"
    if spike_count > 5:
        return "Poor"
    return "Critical"


def speed_variation_pct(average: float, minimum: float, maximum: float) -> float:
    if average <= 0:
        return 0.0
    return (maximum - minimum) / average * 100


def is_connection_stable(
    stability_score: float,
    spike_count: int,
    variation_pct: float,
    jitter_ms: float,
    packet_loss_pct: float,
) -> bool:
    return (
        stability_score > 0.5
        and spike_count < 3
        and variation_pct < 100
        and jitter_ms < 50.0
        and packet_loss_pct < 2.0
    )


def build_report(
    speed_samples: Sequence[SpeedSample],
    latency_samples: Sequence[LatencySample],
    test_duration_seconds: int,
) -> ConnectionReport:
    average, minimum, maximum = summarize_speeds(speed_samples)
    has_spikes, spike_count = detect_spikes(speed_samples)
    score = calculate_stability_score(speed_samples, latency_samples)

    return ConnectionReport(
        test_duration_seconds=test_duration_seconds,
        speed_samples=tuple(speed_samples),
        latency_samples=tuple(latency_samples),
        has_spikes=has_spikes,
        spike_count=spike_count,
        stability_score=score,
        stability_description=describe_stability(score, spike_count),
        average_speed=average,
        min_speed=minimum,
        max_speed=maximum,
        speed_variation_pct=speed_variation_pct(average, minimum, maximum),
    )


def build_result(
    report: ConnectionReport,
    upload_mbps: float,
    packet_loss_pct: float,
    connection_type: ConnectionType = ConnectionType.UNKNOWN,
) -> NetworkTestResult:
    jitter = calculate_jitter(report.latency_samples)
    stable = is_connection_stable(
        report.stability_score,
        report.spike_count,
        report.speed_variation_pct,
        jitter,
        packet_loss_pct,
    )
    result = NetworkTestResult(
        download_mbps=report.average_speed,
        upload_mbps=upload_mbps,
        latency_ms=average_latency(report.latency_samples),
        jitter_ms=jitter,
        packet_loss_pct=packet_loss_pct,
        connection_type=connection_type,
        is_stable=stable,
        connection_report=report,
    )
    LOGGER.info(
        "Link summary: down %.2f Mbps / up %.2f Mbps, latency %d ms, jitter %.1f ms, "
        "loss %.1f%%, stability %.2f (%s), stable=%s",
        result.download_mbps,
        result.upload_mbps,
        result.latency_ms,
        result.jitter_ms,
        result.packet_loss_pct,
        report.stability_score,
        report.stability_description,
        stable,
    )
    return result
