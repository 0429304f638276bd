"""Measurement orchestration: run state, cancellation and the latest result."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import AppConfig
from ..errors import NetworkTestError, TestCancelled, TestInProgressError
from ..streaming.recommendations import StreamingAdvisor
from ..streaming.presets import StreamingConfiguration
from .models import NetworkTestResult
from .probes import HttpProbes
from .scheduler import ProbeScheduler, Probes, ProgressSink

LOGGER = logging.getLogger(__name__)


@dataclass
class RunState:
    state: str = "idle"  # idle | running | completed | failed | cancelled
    percent: int = 0
    label: str = ""
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "percent": self.percent,
            "label": self.label,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class MeasurementManager:
    """
    Entry point used by the web layer and the CLI.

    ``start_test`` runs one comprehensive test and returns its result or
    raises :class:`NetworkTestError`; ``generate_recommendations`` turns any
    result into ranked presets. Only the most recent result is kept in memory.
    """

    def __init__(
        self,
        config: AppConfig,
        probes_factory: Optional[Callable[[], Probes]] = None,
        advisor: Optional[StreamingAdvisor] = None,
        connection_detector: Optional[Callable] = None,
    ):
        self.config = config
        self._probes_factory = probes_factory or (lambda: HttpProbes(config))
        self.advisor = advisor or StreamingAdvisor()
        self._connection_detector = connection_detector
        self._lock = threading.Lock()
        self._cancel_event: Optional[threading.Event] = None
        self._state = RunState()
        self._latest: Optional[NetworkTestResult] = None

    @property
    def latest_result(self) -> Optional[NetworkTestResult]:
        with self._lock:
            return self._latest

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._state.state == "running"

    def status(self) -> Dict[str, Any]:
        with self._lock:
            return self._state.to_dict()

    def cancel(self) -> bool:
        with self._lock:
            if self._state.state != "running" or self._cancel_event is None:
                return False
            self._cancel_event.set()
        LOGGER.info("Cancellation requested for running network test")
        return True

    def _record_progress(self, percent: int, label: str) -> None:
        with self._lock:
            self._state.percent = percent
            self._state.label = label

    def _finish(self, state: str, error: Optional[str] = None) -> None:
        with self._lock:
            self._state.state = state
            self._state.error = error
            self._state.finished_at = datetime.now(timezone.utc)
            self._cancel_event = None

    def start_test(self, progress_sink: Optional[ProgressSink] = None) -> NetworkTestResult:
        with self._lock:
            if self._state.state == "running":
                raise TestInProgressError("A network test is already running")
            self._cancel_event = threading.Event()
            self._state = RunState(state="running", started_at=datetime.now(timezone.utc))
            cancel_event = self._cancel_event

        def relay(percent: int, label: str) -> None:
            self._record_progress(percent, label)
            if progress_sink is not None:
                progress_sink(percent, label)

        kwargs = {}
        if self._connection_detector is not None:
            kwargs["connection_detector"] = self._connection_detector

        probes = None
        try:
            probes = self._probes_factory()
            scheduler = ProbeScheduler(probes, self.config.probe, cancel_event=cancel_event, **kwargs)
            result = scheduler.run_comprehensive_test(relay)
        except TestCancelled as exc:
            LOGGER.warning("Network test cancelled: %s", exc)
            self._finish("cancelled", str(exc))
            raise
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("Network test failed")
            self._finish("failed", str(exc) or exc.__class__.__name__)
            raise NetworkTestError(f"Network test failed: {exc}") from exc
        finally:
            close = getattr(probes, "close", None)
            if callable(close):
                close()

        with self._lock:
            self._latest = result
        self._finish("completed")
        return result

    def generate_recommendations(
        self, result: Optional[NetworkTestResult] = None
    ) -> List[StreamingConfiguration]:
        target = result or self.latest_result
        if target is None:
            return []
        return self.advisor.generate_recommendations(target)
