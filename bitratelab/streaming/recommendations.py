"""Streaming preset recommendations derived from a network test result."""

from __future__ import annotations

import logging
from typing import List

from ..measurements.models import NetworkTestResult
from .presets import (
    FRAME_RATES,
    Codec,
    Resolution,
    RiskLevel,
    StreamingConfiguration,
    preset_bitrate_kbps,
)

LOGGER = logging.getLogger(__name__)

# Minimum upload/bitrate ratio for each base tier, checked in order
HEADROOM_TIERS = (
    (2.0, RiskLevel.LOW),
    (1.5, RiskLevel.MEDIUM),
    (1.0, RiskLevel.HIGH),
)

# (threshold, points) ladders; the first exceeded threshold wins
PACKET_LOSS_LADDER = ((2.0, 2), (1.0, 1), (0.2, 1))
JITTER_LADDER = ((50.0, 2), (30.0, 1), (15.0, 1))
LATENCY_LADDER = ((300.0, 2), (150.0, 1), (50.0, 1))

QUALITY_FAILURE_DOWNGRADE = 2


def _ladder_points(value: float, ladder) -> int:
    for threshold, points in ladder:
        if value > threshold:
            return points
    return 0


def headroom_tier(headroom_ratio: float) -> RiskLevel:
    for minimum, level in HEADROOM_TIERS:
        if headroom_ratio >= minimum:
            return level
    return RiskLevel.CRITICAL


def quality_failures(packet_loss_pct: float, jitter_ms: float, latency_ms: float) -> int:
    return (
        _ladder_points(packet_loss_pct, PACKET_LOSS_LADDER)
        + _ladder_points(jitter_ms, JITTER_LADDER)
        + _ladder_points(latency_ms, LATENCY_LADDER)
    )


def quality_label(risk_level: RiskLevel, is_stable: bool) -> str:
    if risk_level == RiskLevel.LOW:
        return "Excellent" if is_stable else "Good"
    if risk_level == RiskLevel.MEDIUM:
        return "Good" if is_stable else "Fair"
    if risk_level == RiskLevel.HIGH:
        return "Poor"
    return "Very Poor"


def describe_preset(resolution: Resolution, fps: int, codec: Codec, risk_level: RiskLevel) -> str:
    return f"{resolution.display_name} @ {fps}fps ({codec.display_name}) - {risk_level.rationale}"


def _sort_key(config: StreamingConfiguration):
    return (config.risk_level, -config.resolution.pixel_count, -config.fps)


class StreamingAdvisor:
    """
    Classifies every encoder preset against a measured link.

    Live streaming is upload-bound, so the base tier comes from the ratio of
    measured upload bandwidth to the preset bitrate. Link quality (loss,
    jitter, latency) can then push the tier down one step.
    """

    def classify_risk(self, bitrate_kbps: int, result: NetworkTestResult) -> RiskLevel:
        required_mbps = bitrate_kbps / 1000
        headroom = result.upload_mbps / required_mbps if required_mbps > 0 else float("inf")
        level = headroom_tier(headroom)

        failures = quality_failures(result.packet_loss_pct, result.jitter_ms, result.latency_ms)
        if failures >= QUALITY_FAILURE_DOWNGRADE:
            level = level.downgrade()

        LOGGER.debug(
            "Bitrate: %.2fMbps, Upload: %.2fMbps, Headroom: %.2fx, Loss: %.2f%%, "
            "Jitter: %.1fms, Latency: %sms, QualityFails: %d -> %s",
            required_mbps,
            result.upload_mbps,
            headroom,
            result.packet_loss_pct,
            result.jitter_ms,
            result.latency_ms,
            failures,
            level.name,
        )
        return level

    def generate_recommendations(self, result: NetworkTestResult) -> List[StreamingConfiguration]:
        configurations = []
        for resolution in Resolution:
            for fps in FRAME_RATES:
                for codec in Codec:
                    bitrate = preset_bitrate_kbps(resolution, fps, codec)
                    risk = self.classify_risk(bitrate, result)
                    configurations.append(
                        StreamingConfiguration(
                            resolution=resolution,
                            fps=fps,
                            bitrate_kbps=bitrate,
                            codec=codec,
                            quality_label=quality_label(risk, result.is_stable),
                            risk_level=risk,
                            description=describe_preset(resolution, fps, codec, risk),
                        )
                    )

        # sorted() is stable, so codecs keep their enumeration order within ties
        return sorted(configurations, key=_sort_key)


def generate_recommendations(result: NetworkTestResult) -> List[StreamingConfiguration]:
    return StreamingAdvisor().generate_recommendations(result)
