"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from flask import Flask, Response, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

from ..config import AppConfig
from ..errors import NetworkTestError
from ..exporter import CSVExporter
from ..measurements.manager import MeasurementManager
from ..measurements.models import NetworkTestResult

LOGGER = logging.getLogger(__name__)


def create_web_app(
    config: AppConfig,
    measurement_manager: MeasurementManager,
    exporter: CSVExporter,
    executor: ThreadPoolExecutor = None,
) -> Flask:
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.web.secret_key

    if config.web.reverse_proxy_headers:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="network-test")
    submit_lock = threading.Lock()
    queued = {"future": None}

    @app.get("/")
    def index():
        return jsonify({"service": "bitratelab", "test": measurement_manager.status()})

    @app.get("/api/status")
    def api_status():
        latest = measurement_manager.latest_result
        return jsonify(
            {
                "test": measurement_manager.status(),
                "has_result": latest is not None,
                "endpoints": {
                    "download": config.endpoints.download_url,
                    "upload": config.endpoints.upload_url,
                    "latency_host": config.endpoints.latency_host,
                    "packet_loss": config.endpoints.packet_loss_url,
                },
            }
        )

    @app.post("/api/test")
    def api_start_test():
        with submit_lock:
            pending = queued["future"]
            if measurement_manager.is_running or (pending is not None and not pending.done()):
                return jsonify({"error": "A network test is already running"}), 409
            queued["future"] = executor.submit(_run_test_task, measurement_manager, exporter)
        return jsonify({"status": "queued", "task": "network-test"}), 202

    @app.get("/api/test/progress")
    def api_test_progress():
        return jsonify(measurement_manager.status())

    @app.post("/api/test/cancel")
    def api_cancel_test():
        if not measurement_manager.cancel():
            return jsonify({"status": "idle", "message": "No network test is running"}), 409
        return jsonify({"status": "cancelling"}), 202

    @app.get("/api/test/result")
    def api_test_result():
        latest = measurement_manager.latest_result
        if latest is None:
            return jsonify({"error": "No test result available"}), 404
        return jsonify(latest.to_dict())

    @app.get("/api/recommendations")
    def api_recommendations():
        latest = measurement_manager.latest_result
        if latest is None:
            return jsonify({"error": "No test result available"}), 404
        configurations = measurement_manager.generate_recommendations(latest)
        return jsonify([configuration.to_dict() for configuration in configurations])

    @app.post("/api/recommendations")
    def api_recommendations_for_result():
        payload = request.get_json(silent=True)
        if not payload:
            return jsonify({"error": "No network result provided"}), 400
        if not isinstance(payload, dict):
            return jsonify({"error": "Network result must be a JSON object"}), 400
        try:
            result = NetworkTestResult.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            return jsonify({"error": f"Invalid network result: {exc}"}), 400
        configurations = measurement_manager.generate_recommendations(result)
        return jsonify([configuration.to_dict() for configuration in configurations])

    @app.get("/api/export/csv")
    def api_export_csv():
        latest = measurement_manager.latest_result
        if latest is None:
            return jsonify({"error": "No test result available"}), 404

        kind = request.args.get("kind", "recommendations")
        if kind == "samples":
            buffer = exporter.build_samples_csv(latest)
        elif kind == "recommendations":
            buffer = exporter.build_recommendations_csv(
                measurement_manager.generate_recommendations(latest)
            )
        else:
            return jsonify({"error": f"Unknown export kind '{kind}'"}), 400

        filename = f"{kind}-{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%S')}.csv"
        return Response(
            buffer.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    return app


def _run_test_task(manager: MeasurementManager, exporter: CSVExporter) -> None:
    try:
        result = manager.start_test()
        exporter.write_snapshot(result, manager.generate_recommendations(result))
    except NetworkTestError as exc:
        LOGGER.error("Network test did not complete: %s", exc)
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.exception("Queued network test failed: %s", exc)
