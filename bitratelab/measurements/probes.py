"""Single-shot network probes (download, latency, upload, packet loss).

Each probe is bounded and independent. Network failures never raise: a
probe that cannot complete returns its documented sentinel so the scheduler
can keep going. The packet loss probe raises ProbeTimeout when its deadline
passes, leaving the fallback to the scheduler.
"""

from __future__ import annotations

import logging
import platform
import re
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

import requests

from ..config import AppConfig
from .models import ConnectionType

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 65536
LATENCY_TIMEOUT_MS = 1000
MIN_TRANSFER_SECONDS = 0.1

PING_TIME_PATTERN = {
    "windows": r"time[=<](\d+(?:\.\d+)?)\s*ms",
    "default": r"time=(\d+(?:\.\d+)?)\s*ms",
}


class ProbeTimeout(Exception):
    """Raised inside a probe when its deadline has passed."""


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _is_success_or_redirect(status_code: int) -> bool:
    return 200 <= status_code < 400


def to_mbps(byte_count: int, seconds: float) -> float:
    """Decimal megabits per second."""
    if seconds <= 0:
        return 0.0
    return (byte_count * 8) / seconds / 1_000_000


def upload_payload(size: int) -> bytes:
    pattern = bytes(range(256))
    full, remainder = divmod(size, 256)
    return pattern * full + pattern[:remainder]


def ping_host(host: str, timeout_ms: int) -> Optional[float]:
    """Ping host once with the system utility and return the round trip in ms."""
    is_windows = platform.system() == "Windows"
    if is_windows:
        cmd = ["ping", "-n", "1", "-w", str(timeout_ms), host]
    else:
        cmd = ["ping", "-c", "1", "-W", str(max(1, round(timeout_ms / 1000))), host]

    started = time.perf_counter()
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_ms / 1000)
    except (subprocess.TimeoutExpired, OSError) as exc:
        LOGGER.debug("Ping to %s failed: %s", host, exc)
        return None
    elapsed_ms = (time.perf_counter() - started) * 1000

    if result.returncode != 0:
        return None

    pattern = PING_TIME_PATTERN["windows" if is_windows else "default"]
    match = re.search(pattern, result.stdout, re.IGNORECASE)
    if match:
        return float(match.group(1))
    return elapsed_ms


def _default_route_interface() -> Optional[str]:
    result = subprocess.run(
        ["ip", "route", "get", "8.8.8.8"], capture_output=True, text=True, timeout=5
    )
    match = re.search(r"\bdev\s+(\S+)", result.stdout)
    return match.group(1) if match else None


def classify_interface(name: str, sys_class_net: Path = Path("/sys/class/net")) -> ConnectionType:
    if (sys_class_net / name / "wireless").exists() or name.startswith("wl"):
        return ConnectionType.WIFI
    if name.startswith(("eth", "en")):
        return ConnectionType.ETHERNET
    if name.startswith(("wwan", "rmnet", "ccmni")):
        return ConnectionType.MOBILE_4G
    return ConnectionType.UNKNOWN


def detect_connection_type() -> ConnectionType:
    """Best-effort classification of the transport carrying the default route."""
    try:
        system = platform.system()
        if system == "Linux":
            interface = _default_route_interface()
            if interface:
                return classify_interface(interface)
        elif system == "Windows":
            result = subprocess.run(
                ["netsh", "interface", "show", "interface"],
                capture_output=True, text=True, timeout=10
            )
            for line in result.stdout.lower().split("\n"):
                if "connected" not in line:
                    continue
                if "wi-fi" in line or "wireless" in line or "wlan" in line:
                    return ConnectionType.WIFI
                if "ethernet" in line or "local area" in line:
                    return ConnectionType.ETHERNET
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.debug("Failed to detect connection type: %s", exc)
    return ConnectionType.UNKNOWN


class HttpProbes:
    """Probe implementations backed by ``requests`` and the system ping."""

    def __init__(
        self,
        config: AppConfig,
        session: Optional[requests.Session] = None,
        ping: Callable[[str, int], Optional[float]] = ping_host,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config
        self.session = session or self._build_session(config)
        self._ping = ping
        self._clock = clock
        self._payload: Optional[bytes] = None

    @staticmethod
    def _build_session(config: AppConfig) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = config.http.user_agent
        return session

    def close(self) -> None:
        self.session.close()

    def _timeout(self, deadline: Optional[float]) -> Tuple[float, float]:
        connect, read = self.config.http_timeout
        if deadline is None:
            return connect, read
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProbeTimeout("deadline already passed")
        return min(connect, remaining), min(read, remaining)

    @staticmethod
    def _check_deadline(deadline: Optional[float]) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise ProbeTimeout("deadline passed while transferring")

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def measure_download_quick(self, deadline: Optional[float] = None) -> float:
        """Throughput of a 5 MB fetch, timed from the first received byte."""
        return self._download(
            self.config.probe.quick_download_bytes,
            from_first_byte=True,
            min_seconds=MIN_TRANSFER_SECONDS,
            deadline=deadline,
        )

    def measure_download_full(self, deadline: Optional[float] = None) -> float:
        """Throughput of a 25 MB fetch, timed from the request start."""
        return self._download(
            self.config.probe.full_download_bytes,
            from_first_byte=False,
            min_seconds=0.0,
            deadline=deadline,
        )

    def _download(
        self,
        byte_count: int,
        from_first_byte: bool,
        min_seconds: float,
        deadline: Optional[float],
    ) -> float:
        url = self.config.endpoints.download_url
        total_bytes = 0
        first_byte_at: Optional[float] = None
        try:
            request_start = self._clock()
            with self.session.get(
                url, params={"bytes": byte_count}, stream=True, timeout=self._timeout(deadline)
            ) as response:
                if not _is_success(response.status_code):
                    LOGGER.debug("Download probe got HTTP %s", response.status_code)
                    return 0.0
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    if first_byte_at is None:
                        first_byte_at = self._clock()
                    total_bytes += len(chunk)
                    self._check_deadline(deadline)
            finished = self._clock()
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Download probe failed: %s", exc)
            return 0.0

        started = first_byte_at if from_first_byte and first_byte_at is not None else request_start
        elapsed = finished - started
        if elapsed < min_seconds or elapsed <= 0:
            LOGGER.debug("Download of %d bytes took %.3fs, too fast to measure", total_bytes, elapsed)
            return 0.0
        return to_mbps(total_bytes, elapsed)

    # ------------------------------------------------------------------
    # Latency
    # ------------------------------------------------------------------

    def measure_latency_quick(self, deadline: Optional[float] = None) -> int:
        """Round trip to the anchor host: ping first, plain HTTP HEAD second."""
        host = self.config.endpoints.latency_host
        rtt = self._ping(host, self.config.probe.ping_timeout_ms)
        if rtt is not None:
            return int(round(rtt))

        try:
            started = self._clock()
            with self.session.head(
                f"http://{host}/", allow_redirects=False, timeout=self._timeout(deadline)
            ) as response:
                finished = self._clock()
                if _is_success_or_redirect(response.status_code):
                    return int(round((finished - started) * 1000))
                LOGGER.debug("Latency HEAD to %s got HTTP %s", host, response.status_code)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Latency HEAD to %s failed: %s", host, exc)
        return LATENCY_TIMEOUT_MS

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def measure_upload(self, fallback_mbps: float, deadline: Optional[float] = None) -> float:
        """POST a 2 MB synthetic payload; ``fallback_mbps`` when unmeasurable."""
        if self._payload is None:
            self._payload = upload_payload(self.config.probe.upload_bytes)
        payload = self._payload

        try:
            started = self._clock()
            with self.session.post(
                self.config.endpoints.upload_url,
                data=payload,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self._timeout(deadline),
            ) as response:
                finished = self._clock()
                if not _is_success(response.status_code):
                    LOGGER.debug("Upload probe got HTTP %s", response.status_code)
                    return fallback_mbps
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.debug("Upload probe failed: %s", exc)
            return fallback_mbps

        elapsed = finished - started
        if elapsed < MIN_TRANSFER_SECONDS:
            return fallback_mbps
        return to_mbps(len(payload), elapsed)

    # ------------------------------------------------------------------
    # Packet loss
    # ------------------------------------------------------------------

    def measure_packet_loss(self, deadline: Optional[float] = None) -> float:
        """
        Percentage of lightweight HEAD requests that did not succeed.

        Running out of time is not loss: a passed deadline raises
        :class:`ProbeTimeout` so the caller records its fallback instead.
        """
        total = self.config.probe.packet_loss_probes
        if total <= 0:
            return 0.0

        url = self.config.endpoints.packet_loss_url
        successful = 0
        for _ in range(total):
            try:
                with self.session.head(url, timeout=self._timeout(deadline)) as response:
                    if _is_success(response.status_code):
                        successful += 1
            except ProbeTimeout:
                raise
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.debug("Packet loss probe to %s lost: %s", url, exc)

        return (total - successful) / total * 100
