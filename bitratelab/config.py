"""Configuration loading helpers for the streaming bitrate advisor."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import yaml


@dataclass
class PathsConfig:
    data_dir: Path
    logs_dir: Path


@dataclass
class EndpointsConfig:
    download_url: str = "https://speed.cloudflare.com/__down"
    upload_url: str = "https://speed.cloudflare.com/__up"
    latency_host: str = "1.1.1.1"
    packet_loss_url: str = "https://www.google.com"


@dataclass
class ProbeConfig:
    rounds: int = 20
    interval_ms: int = 2000
    download_timeout_ms: int = 3000
    latency_timeout_ms: int = 1500
    upload_timeout_ms: int = 5000
    packet_loss_timeout_ms: int = 5000
    ping_timeout_ms: int = 3000
    quick_download_bytes: int = 5_000_000
    full_download_bytes: int = 25_000_000
    upload_bytes: int = 2_000_000
    packet_loss_probes: int = 10
    upload_fallback_ratio: float = 0.2
    max_test_seconds: int = 120


@dataclass
class HttpConfig:
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    user_agent: str = "bitratelab/1.0"


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    secret_key: str = "change-me"
    reverse_proxy_headers: bool = False


@dataclass
class ExportConfig:
    recommendations_csv: str = "recommendations.csv"
    samples_csv: str = "samples.csv"


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    endpoints: EndpointsConfig = field(default_factory=EndpointsConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    web: WebConfig = field(default_factory=WebConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def http_timeout(self) -> tuple:
        return (self.http.connect_timeout, self.http.read_timeout)


DEFAULT_CONFIG_NAME = "config.yaml"

# YAML section name -> dataclass built from it
SECTION_TYPES = {
    "endpoints": EndpointsConfig,
    "probe": ProbeConfig,
    "http": HttpConfig,
    "web": WebConfig,
    "export": ExportConfig,
    "logging": LoggingConfig,
}


def _resolve_dir(root_dir: Path, entry: Optional[str], name: str) -> Path:
    """Anchor a configured directory at the config file and create it."""
    if not entry:
        raise ValueError(f"paths.{name} cannot be empty")
    directory = (root_dir / entry).resolve()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise TypeError(f"Configuration section '{name}' must be a mapping")
    return section


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Read the YAML configuration at ``path`` (``./config.yaml`` by default).

    Relative directories are resolved against the file's own directory.
    Unknown keys inside a section raise ``TypeError``.
    """
    source = Path(path).resolve() if path else Path.cwd() / DEFAULT_CONFIG_NAME
    if not source.is_file():
        raise FileNotFoundError(f"Missing configuration file at {source}")

    data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise TypeError(f"{source} must contain a YAML mapping")

    root_dir = source.parent
    paths_data = _section(data, "paths")
    paths = PathsConfig(
        data_dir=_resolve_dir(root_dir, paths_data.get("data_dir", "data"), "data_dir"),
        logs_dir=_resolve_dir(root_dir, paths_data.get("logs_dir", "logs"), "logs_dir"),
    )
    sections = {name: kind(**_section(data, name)) for name, kind in SECTION_TYPES.items()}
    return AppConfig(root_dir=root_dir, paths=paths, **sections)
