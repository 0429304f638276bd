"""Entry point for the streaming bitrate advisor."""

from __future__ import annotations

import argparse
import sys

from bitratelab import ApplicationContext, bootstrap
from bitratelab.errors import NetworkTestError
from bitratelab.measurements.probes import HttpProbes


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live streaming network test and preset advisor")
    parser.add_argument("--config", help="Path to config.yaml", default="config.yaml")
    parser.add_argument("--host", default=None, help="Override web server host")
    parser.add_argument("--port", type=int, default=None, help="Override web server port")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run one test in the terminal and exit")
    mode.add_argument(
        "--full-download", action="store_true", help="Measure a single 25 MB download and exit"
    )
    return parser.parse_args(argv)


def _print_progress(percent: int, label: str) -> None:
    print(f"[{percent:3d}%] {label}", flush=True)


def run_once(context: ApplicationContext) -> int:
    try:
        result = context.measurements.start_test(_print_progress)
    except NetworkTestError as exc:
        print(f"Test failed: {exc}", file=sys.stderr)
        return 1

    report = result.connection_report
    print()
    print(f"Download:   {result.download_mbps:.2f} Mbps")
    print(f"Upload:     {result.upload_mbps:.2f} Mbps")
    print(f"Latency:    {result.latency_ms} ms (jitter {result.jitter_ms:.1f} ms)")
    print(f"Loss:       {result.packet_loss_pct:.1f}%")
    print(f"Connection: {result.connection_type.value}, stable={result.is_stable}")
    print(f"Stability:  {report.stability_score:.2f} {report.stability_description} - {report.stability_details}")
    print()

    configurations = context.measurements.generate_recommendations(result)
    for configuration in configurations:
        print(
            f"{configuration.risk_level.display_name:<12} {configuration.quality_label:<10} "
            f"{configuration.bitrate_kbps:>6} kbps  {configuration.description}"
        )

    paths = context.exporter.write_snapshot(result, configurations)
    print()
    print("Saved " + ", ".join(str(path) for path in paths))
    return 0


def run_full_download(context: ApplicationContext) -> int:
    probes = HttpProbes(context.config)
    try:
        speed = probes.measure_download_full()
    finally:
        probes.close()
    if speed <= 0:
        print("Full download measurement failed", file=sys.stderr)
        return 1
    print(f"Download: {speed:.2f} Mbps")
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    context = bootstrap(args.config)

    if args.once:
        return run_once(context)
    if args.full_download:
        return run_full_download(context)

    host = args.host or context.config.web.host
    port = args.port or context.config.web.port
    context.web_app.run(host=host, port=port, debug=args.debug)
    return 0


if __name__ == "__main__":
    sys.exit(main())
