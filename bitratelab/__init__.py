"""Application bootstrap helpers."""

from __future__ import annotations

from typing import Optional

from .config import AppConfig, load_config
from .exporter import CSVExporter
from .logging_setup import configure_logging
from .measurements.manager import MeasurementManager
from .web.app import create_web_app


class ApplicationContext:
    """Holds shared singletons for the service."""

    def __init__(self, config: AppConfig):
        self.config = config
        configure_logging(config)
        self.measurements = MeasurementManager(config)
        self.exporter = CSVExporter(config)
        self.web_app = create_web_app(
            config=config,
            measurement_manager=self.measurements,
            exporter=self.exporter,
        )


def bootstrap(config_path: Optional[str] = None) -> ApplicationContext:
    """Load configuration and wire dependencies."""
    return ApplicationContext(load_config(config_path))
