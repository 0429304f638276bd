"""Shared pytest fixtures."""

import time

import pytest
import yaml

from bitratelab.config import ProbeConfig, load_config
from bitratelab.measurements.models import (
    ConnectionReport,
    ConnectionType,
    NetworkTestResult,
    empty_report,
)


class FakeProbes:
    """In-memory probe implementation with scripted results."""

    def __init__(
        self,
        speeds=None,
        latencies=None,
        upload=25.0,
        packet_loss=0.0,
        download_delay=0.0,
        latency_delay=0.0,
        packet_loss_delay=0.0,
    ):
        self.speeds = list(speeds) if speeds is not None else [50.0]
        self.latencies = list(latencies) if latencies is not None else [20]
        self.upload = upload
        self.packet_loss = packet_loss
        self.download_delay = download_delay
        self.latency_delay = latency_delay
        self.packet_loss_delay = packet_loss_delay
        self.download_calls = 0
        self.latency_calls = 0
        self.upload_fallbacks = []
        self.closed = False

    @staticmethod
    def _pick(values, index):
        return values[index % len(values)]

    def measure_download_quick(self, deadline=None):
        value = self._pick(self.speeds, self.download_calls)
        self.download_calls += 1
        if self.download_delay:
            time.sleep(self.download_delay)
        if isinstance(value, Exception):
            raise value
        return value

    def measure_latency_quick(self, deadline=None):
        value = self._pick(self.latencies, self.latency_calls)
        self.latency_calls += 1
        if self.latency_delay:
            time.sleep(self.latency_delay)
        if isinstance(value, Exception):
            raise value
        return value

    def measure_upload(self, fallback_mbps, deadline=None):
        self.upload_fallbacks.append(fallback_mbps)
        if isinstance(self.upload, Exception):
            raise self.upload
        return self.upload

    def measure_packet_loss(self, deadline=None):
        if self.packet_loss_delay:
            time.sleep(self.packet_loss_delay)
        if isinstance(self.packet_loss, Exception):
            raise self.packet_loss
        return self.packet_loss

    def close(self):
        self.closed = True


@pytest.fixture
def fake_probes():
    return FakeProbes(speeds=[48.0, 50.0, 52.0], latencies=[20, 22, 24], upload=30.0)


@pytest.fixture
def fast_probe_config():
    return ProbeConfig(interval_ms=0)


@pytest.fixture
def app_config(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({"probe": {"interval_ms": 0}, "logging": {"level": "DEBUG"}}),
        encoding="utf-8",
    )
    return load_config(str(config_path))


@pytest.fixture
def excellent_result():
    """493 Mbps down / 93 Mbps up / 24 ms link."""
    report = ConnectionReport(
        test_duration_seconds=22,
        speed_samples=(),
        latency_samples=(),
        has_spikes=False,
        spike_count=0,
        stability_score=0.95,
        stability_description="Excellent",
        average_speed=493.44,
        min_speed=485.0,
        max_speed=500.0,
        speed_variation_pct=3.0,
    )
    return NetworkTestResult(
        download_mbps=493.44,
        upload_mbps=93.2,
        latency_ms=24,
        jitter_ms=5.0,
        packet_loss_pct=0.0,
        connection_type=ConnectionType.WIFI,
        is_stable=True,
        connection_report=report,
    )


@pytest.fixture
def degraded_result():
    """Plenty of upload but lossy, jittery and slow to respond."""
    return NetworkTestResult(
        download_mbps=493.44,
        upload_mbps=93.2,
        latency_ms=350,
        jitter_ms=60.0,
        packet_loss_pct=3.0,
        connection_type=ConnectionType.WIFI,
        is_stable=False,
        connection_report=empty_report(),
    )
