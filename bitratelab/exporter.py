"""CSV export helpers for the latest test run."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List

from .config import AppConfig
from .measurements.models import NetworkTestResult
from .streaming.presets import StreamingConfiguration


class CSVExporter:
    def __init__(self, config: AppConfig):
        self.config = config

    def build_recommendations_csv(self, configurations: Iterable[StreamingConfiguration]) -> io.StringIO:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(self._recommendation_header())
        for configuration in configurations:
            writer.writerow(self._row_for_configuration(configuration))
        buffer.seek(0)
        return buffer

    def build_samples_csv(self, result: NetworkTestResult) -> io.StringIO:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["round", "timestamp", "speed_mbps", "latency_ms"])

        report = result.connection_report
        rows = zip(report.speed_samples, report.latency_samples)
        for index, (speed, latency) in enumerate(rows, start=1):
            writer.writerow(
                [
                    index,
                    datetime.fromtimestamp(speed.timestamp_ms / 1000, tz=timezone.utc).isoformat(),
                    round(speed.speed_mbps, 3),
                    latency.latency_ms,
                ]
            )

        buffer.seek(0)
        return buffer

    @staticmethod
    def _recommendation_header() -> List[str]:
        return [
            "resolution",
            "fps",
            "codec",
            "bitrate_kbps",
            "risk_level",
            "quality",
            "description",
        ]

    @staticmethod
    def _row_for_configuration(configuration: StreamingConfiguration) -> list:
        return [
            configuration.resolution.display_name,
            configuration.fps,
            configuration.codec.display_name,
            configuration.bitrate_kbps,
            configuration.risk_level.display_name,
            configuration.quality_label,
            configuration.description,
        ]

    def write_snapshot(
        self,
        result: NetworkTestResult,
        configurations: Iterable[StreamingConfiguration],
    ) -> List[Path]:
        data_dir = self.config.paths.data_dir
        recommendations_path = data_dir / self.config.export.recommendations_csv
        samples_path = data_dir / self.config.export.samples_csv
        recommendations_path.write_text(
            self.build_recommendations_csv(configurations).getvalue(), encoding="utf-8"
        )
        samples_path.write_text(self.build_samples_csv(result).getvalue(), encoding="utf-8")
        return [recommendations_path, samples_path]
