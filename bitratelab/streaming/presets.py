"""Encoder preset rule tables: resolutions, codecs, risk levels."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Tuple


class Resolution(str, Enum):
    R_360P = "360p"
    R_480P = "480p"
    R_720P = "720p"
    R_1080P = "1080p"
    R_1440P = "1440p"
    R_4K = "4K"

    @property
    def width(self) -> int:
        return RESOLUTION_DIMENSIONS[self][0]

    @property
    def height(self) -> int:
        return RESOLUTION_DIMENSIONS[self][1]

    @property
    def pixel_count(self) -> int:
        width, height = RESOLUTION_DIMENSIONS[self]
        return width * height

    @property
    def display_name(self) -> str:
        return self.value


RESOLUTION_DIMENSIONS: Dict[Resolution, Tuple[int, int]] = {
    Resolution.R_360P: (640, 360),
    Resolution.R_480P: (854, 480),
    Resolution.R_720P: (1280, 720),
    Resolution.R_1080P: (1920, 1080),
    Resolution.R_1440P: (2560, 1440),
    Resolution.R_4K: (3840, 2160),
}


class Codec(str, Enum):
    H264 = "h264"
    H265 = "h265"
    AV1 = "av1"

    @property
    def display_name(self) -> str:
        return CODEC_PROFILES[self][0]

    @property
    def efficiency(self) -> float:
        """Bitrate multiplier relative to H.264 for equivalent quality."""
        return CODEC_PROFILES[self][1]


CODEC_PROFILES: Dict[Codec, Tuple[str, float]] = {
    Codec.H264: ("H.264", 1.0),
    Codec.H265: ("H.265/HEVC", 0.7),
    Codec.AV1: ("AV1", 0.6),
}


class RiskLevel(IntEnum):
    """Ordered from safest to least viable."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def display_name(self) -> str:
        return RISK_PROFILES[self][0]

    @property
    def color(self) -> str:
        return RISK_PROFILES[self][1]

    @property
    def rationale(self) -> str:
        return RISK_PROFILES[self][2]

    def downgrade(self) -> "RiskLevel":
        return RiskLevel(min(self.value + 1, RiskLevel.CRITICAL.value))


RISK_PROFILES: Dict[RiskLevel, Tuple[str, str, str]] = {
    RiskLevel.LOW: (
        "Recommended",
        "#4CAF50",
        "Recommended - 2x headroom, smooth streaming with buffer for spikes",
    ),
    RiskLevel.MEDIUM: (
        "Medium",
        "#F4A538",
        "Acceptable - 1.5x headroom, may struggle with network fluctuations",
    ),
    RiskLevel.HIGH: (
        "Risky",
        "#F27E2D",
        "Risky - 1.2x headroom, frequent buffering likely during drops",
    ),
    RiskLevel.CRITICAL: (
        "Impossible",
        "#D4472E",
        "Not recommended - insufficient upload bandwidth at standard bitrate, "
        "consider reducing encoder bitrate manually",
    ),
}

FRAME_RATES = (30, 60)

AUDIO_BITRATE_KBPS = 160

# H.264 video bitrate in kbps keyed by (resolution, fps)
BASELINE_VIDEO_KBPS: Dict[Tuple[Resolution, int], int] = {
    (Resolution.R_360P, 30): 600,
    (Resolution.R_360P, 60): 1000,
    (Resolution.R_480P, 30): 1200,
    (Resolution.R_480P, 60): 2000,
    (Resolution.R_720P, 30): 5000,
    (Resolution.R_720P, 60): 6500,
    (Resolution.R_1080P, 30): 8000,
    (Resolution.R_1080P, 60): 10000,
    (Resolution.R_1440P, 30): 12000,
    (Resolution.R_1440P, 60): 16000,
    (Resolution.R_4K, 30): 18000,
    (Resolution.R_4K, 60): 25000,
}


def preset_bitrate_kbps(resolution: Resolution, fps: int, codec: Codec) -> int:
    """Total stream bitrate: codec-scaled video plus fixed audio."""
    baseline = BASELINE_VIDEO_KBPS[(resolution, fps)]
    video = int(round(baseline * codec.efficiency))
    return video + AUDIO_BITRATE_KBPS


@dataclass(frozen=True)
class StreamingConfiguration:
    resolution: Resolution
    fps: int
    bitrate_kbps: int
    codec: Codec
    quality_label: str
    risk_level: RiskLevel
    description: str

    @property
    def bitrate_mbps(self) -> float:
        return self.bitrate_kbps / 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolution": self.resolution.value,
            "width": self.resolution.width,
            "height": self.resolution.height,
            "fps": self.fps,
            "bitrate_kbps": self.bitrate_kbps,
            "codec": self.codec.display_name,
            "quality": self.quality_label,
            "risk_level": self.risk_level.name,
            "risk_label": self.risk_level.display_name,
            "risk_color": self.risk_level.color,
            "description": self.description,
        }
