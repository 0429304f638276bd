"""Fixed-cadence probe scheduling for a comprehensive link test."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional, Protocol, TypeVar

from ..config import ProbeConfig
from ..errors import TestCancelled
from .analysis import build_report, build_result, summarize_speeds
from .models import ConnectionType, LatencySample, NetworkTestResult, SpeedSample
from .probes import LATENCY_TIMEOUT_MS, detect_connection_type

LOGGER = logging.getLogger(__name__)

ProgressSink = Callable[[int, str], None]
T = TypeVar("T")


class Probes(Protocol):
    def measure_download_quick(self, deadline: Optional[float] = None) -> float: ...

    def measure_latency_quick(self, deadline: Optional[float] = None) -> int: ...

    def measure_upload(self, fallback_mbps: float, deadline: Optional[float] = None) -> float: ...

    def measure_packet_loss(self, deadline: Optional[float] = None) -> float: ...


def _ignore_progress(percent: int, label: str) -> None:
    pass


class ProbeScheduler:
    """
    Drives one comprehensive test run.

    Rounds run strictly one after another: download sample, latency sample,
    then a wait for the rest of the interval so round starts stay
    ``interval_ms`` apart. Upload and packet loss are measured once at the end.
    Each probe call is bounded; a probe that overruns its bound is abandoned
    and its sentinel recorded instead.
    """

    def __init__(
        self,
        probes: Probes,
        probe_config: Optional[ProbeConfig] = None,
        connection_detector: Callable[[], ConnectionType] = detect_connection_type,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.probes = probes
        self.config = probe_config or ProbeConfig()
        self.detect_connection = connection_detector
        self.cancel_event = cancel_event or threading.Event()
        self._started_at = 0.0
        self._last_percent = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _report(self, sink: ProgressSink, percent: int, label: str) -> None:
        percent = max(self._last_percent, min(100, percent))
        self._last_percent = percent
        try:
            sink(percent, label)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Progress sink raised %s; ignoring", exc)

    def _ensure_active(self) -> None:
        if self.cancel_event.is_set():
            raise TestCancelled("Network test was cancelled")
        if time.monotonic() - self._started_at > self.config.max_test_seconds:
            raise TestCancelled(
                f"Network test exceeded its {self.config.max_test_seconds}s time limit"
            )

    def _bounded(
        self,
        executor: ThreadPoolExecutor,
        name: str,
        timeout_ms: int,
        fallback: T,
        func: Callable[..., T],
        *args,
    ) -> T:
        deadline = time.monotonic() + timeout_ms / 1000
        future = executor.submit(func, *args, deadline=deadline)
        try:
            return future.result(timeout=timeout_ms / 1000)
        except FutureTimeout:
            LOGGER.debug("%s probe exceeded %d ms, using %r", name, timeout_ms, fallback)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("%s probe failed (%s), using %r", name, exc, fallback)
        future.cancel()
        return fallback

    def _pace(self, round_started: float) -> None:
        remaining = self.config.interval_ms / 1000 - (time.monotonic() - round_started)
        if remaining > 0:
            # Event.wait doubles as an interruptible sleep
            self.cancel_event.wait(remaining)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run_comprehensive_test(self, on_progress: Optional[ProgressSink] = None) -> NetworkTestResult:
        sink = on_progress or _ignore_progress
        self._started_at = time.monotonic()
        self._last_percent = 0
        rounds = self.config.rounds

        self._report(sink, 5, "Detecting connection type...")
        try:
            connection_type = self.detect_connection()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Connection detection failed: %s", exc)
            connection_type = ConnectionType.UNKNOWN
        LOGGER.info("Starting network test over %s connection", connection_type.value)

        self._report(sink, 10, "Starting comprehensive analysis...")
        speed_samples: List[SpeedSample] = []
        latency_samples: List[LatencySample] = []
        progress = 15
        progress_step = 70 // rounds if rounds else 0

        # Abandoned probes can still occupy a worker
        executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="probe")
        try:
            for index in range(rounds):
                self._ensure_active()
                round_started = time.monotonic()
                timestamp_ms = int(time.time() * 1000)

                self._report(sink, progress, f"Measuring speed and latency... ({index + 1}/{rounds})")

                speed = self._bounded(
                    executor, "Download", self.config.download_timeout_ms, 0.0,
                    self.probes.measure_download_quick,
                )
                speed_samples.append(SpeedSample(timestamp_ms, float(speed)))

                latency = self._bounded(
                    executor, "Latency", self.config.latency_timeout_ms, LATENCY_TIMEOUT_MS,
                    self.probes.measure_latency_quick,
                )
                latency_samples.append(LatencySample(timestamp_ms, int(latency)))

                LOGGER.debug(
                    "Round %d/%d: %.2f Mbps, %d ms", index + 1, rounds, speed, latency
                )
                progress += progress_step
                self._pace(round_started)

            self._ensure_active()
            self._report(sink, 85, "Analyzing connection stability...")
            average_download, _, _ = summarize_speeds(speed_samples)

            self._report(sink, 90, "Measuring upload speed...")
            upload_fallback = average_download * self.config.upload_fallback_ratio
            upload = self._bounded(
                executor, "Upload", self.config.upload_timeout_ms, upload_fallback,
                self.probes.measure_upload, upload_fallback,
            )

            self._ensure_active()
            self._report(sink, 95, "Calculating packet loss...")
            packet_loss = self._bounded(
                executor, "Packet loss", self.config.packet_loss_timeout_ms, 0.0,
                self.probes.measure_packet_loss,
            )
            self._ensure_active()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        duration = int(time.monotonic() - self._started_at)
        report = build_report(speed_samples, latency_samples, duration)
        result = build_result(
            report,
            upload_mbps=float(upload),
            packet_loss_pct=max(0.0, min(100.0, float(packet_loss))),
            connection_type=connection_type,
        )

        self._report(sink, 100, "Test completed!")
        return result
