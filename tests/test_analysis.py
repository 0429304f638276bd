"""Tests for the connection stability statistics."""

from statistics import pstdev

import pytest

from bitratelab.measurements import analysis
from bitratelab.measurements.models import ConnectionType, LatencySample, SpeedSample


def speeds(*values):
    return [SpeedSample(index * 2000, float(value)) for index, value in enumerate(values)]


def latencies(*values):
    return [LatencySample(index * 2000, int(value)) for index, value in enumerate(values)]


class TestSpeedSummary:
    def test_failed_samples_are_ignored(self):
        average, minimum, maximum = analysis.summarize_speeds(speeds(0, 10, 20, 0, 30))
        assert average == pytest.approx(20.0)
        assert minimum == 10.0
        assert maximum == 30.0

    def test_all_failed_defaults_to_floor(self):
        assert analysis.summarize_speeds(speeds(0, 0, 0)) == (0.1, 0.1, 0.1)

    def test_empty_defaults_to_floor(self):
        assert analysis.summarize_speeds([]) == (0.1, 0.1, 0.1)

    def test_variation(self):
        assert analysis.speed_variation_pct(20.0, 10.0, 30.0) == pytest.approx(100.0)
        assert analysis.speed_variation_pct(0.0, 10.0, 30.0) == 0.0


class TestLatency:
    def test_average_includes_timeout_sentinels(self):
        assert analysis.average_latency(latencies(20, 20, 1000, 20)) == 265

    def test_average_truncates(self):
        assert analysis.average_latency(latencies(10, 11)) == 10

    @pytest.mark.parametrize(
        "series",
        [
            [20, 22, 24],
            [15, 15, 15, 15],
            [10, 1000, 30, 45, 12, 18],
        ],
    )
    def test_jitter_is_population_stdev(self, series):
        assert analysis.calculate_jitter(latencies(*series)) == pytest.approx(pstdev(series))

    @pytest.mark.parametrize("series", [[], [42]])
    def test_jitter_needs_two_samples(self, series):
        assert analysis.calculate_jitter(latencies(*series)) == 0.0


class TestSpikes:
    @pytest.mark.parametrize("series", [[], [5], [1, 100]])
    def test_short_series_has_no_spikes(self, series):
        assert analysis.detect_spikes(speeds(*series)) == (False, 0)

    def test_single_outlier_is_detected(self):
        assert analysis.detect_spikes(speeds(10, 10, 10, 10, 100)) == (True, 1)

    def test_outlier_in_longer_series(self):
        assert analysis.detect_spikes(speeds(10, 10, 10, 10, 10, 100)) == (True, 1)

    def test_failed_probe_counts_as_spike(self):
        series = [50] * 9 + [0]
        assert analysis.detect_spikes(speeds(*series)) == (True, 1)

    def test_constant_series_has_no_spikes(self):
        assert analysis.detect_spikes(speeds(25, 25, 25, 25)) == (False, 0)

    def test_gentle_variation_has_no_spikes(self):
        assert analysis.detect_spikes(speeds(48, 50, 52, 49, 51)) == (False, 0)


class TestStabilityScore:
    def test_perfect_link(self):
        score = analysis.calculate_stability_score(speeds(50, 50, 50), latencies(20, 20, 20))
        assert score == pytest.approx(1.0)

    def test_empty_series_scores_zero(self):
        assert analysis.calculate_stability_score([], latencies(20)) == 0.0
        assert analysis.calculate_stability_score(speeds(5), []) == 0.0

    def test_zero_mean_speed_takes_full_penalty(self):
        score = analysis.calculate_stability_score(speeds(0, 0, 0), latencies(20, 20, 20))
        # 1.0 - 1.0 * 0.4 - 0.2 for a sub-1 Mbps link
        assert score == pytest.approx(0.4)

    def test_slow_and_laggy_penalties(self):
        score = analysis.calculate_stability_score(speeds(0.5, 0.5), latencies(300, 300))
        assert score == pytest.approx(0.7)

    def test_clamped_to_unit_interval(self):
        score = analysis.calculate_stability_score(
            speeds(0, 0, 100, 0, 0), latencies(1000, 5, 1000, 5, 1000)
        )
        assert 0.0 <= score <= 1.0
        assert score == 0.0

    def test_non_increasing_with_speed_variation(self):
        latency_series = latencies(20, 20, 20, 20)
        spreads = [0, 5, 10, 20, 40]
        scores = [
            analysis.calculate_stability_score(
                speeds(50 - spread, 50 + spread, 50 - spread, 50 + spread), latency_series
            )
            for spread in spreads
        ]
        assert scores == sorted(scores, reverse=True)

    def test_non_increasing_with_latency_variation(self):
        speed_series = speeds(50, 50, 50, 50)
        spreads = [0, 5, 10, 15, 19]
        scores = [
            analysis.calculate_stability_score(
                speed_series, latencies(20 - spread, 20 + spread, 20 - spread, 20 + spread)
            )
            for spread in spreads
        ]
        assert scores == sorted(scores, reverse=True)


class TestStabilityDescription:
    @pytest.mark.parametrize(
        "score, spikes, expected",
        [
            (0.90, 0, "Excellent"),
            (0.90, 1, "Very Good"),
            (0.80, 2, "Good"),
            (0.70, 3, "Fair"),
            (0.60, 4, "Moderate"),
            (0.36, 9, "Moderate"),
            (0.30, 6, "Poor"),
            (0.30, 5, "Critical"),
            (0.0, 0, "Critical"),
        ],
    )
    def test_ladder(self, score, spikes, expected):
        assert analysis.describe_stability(score, spikes) == expected

    def test_thresholds_are_exclusive(self):
        assert analysis.describe_stability(0.85, 0) == "Very Good"
        assert analysis.describe_stability(0.50, 0) == "Moderate"
        assert analysis.describe_stability(0.35, 0) == "Critical"


class TestIsStable:
    def test_all_gates_pass(self):
        assert analysis.is_connection_stable(0.9, 0, 10.0, 5.0, 0.0)

    @pytest.mark.parametrize(
        "args",
        [
            (0.5, 0, 10.0, 5.0, 0.0),
            (0.9, 3, 10.0, 5.0, 0.0),
            (0.9, 0, 100.0, 5.0, 0.0),
            (0.9, 0, 10.0, 50.0, 0.0),
            (0.9, 0, 10.0, 5.0, 2.0),
        ],
    )
    def test_any_gate_failing_marks_unstable(self, args):
        assert not analysis.is_connection_stable(*args)


class TestBuildResult:
    def test_steady_link(self):
        report = analysis.build_report(speeds(48, 50, 52), latencies(20, 22, 24), 40)
        result = analysis.build_result(report, upload_mbps=30.0, packet_loss_pct=0.0,
                                       connection_type=ConnectionType.ETHERNET)

        assert result.download_mbps == pytest.approx(50.0)
        assert result.upload_mbps == 30.0
        assert result.latency_ms == 22
        assert result.jitter_ms == pytest.approx(pstdev([20, 22, 24]))
        assert result.connection_type is ConnectionType.ETHERNET
        assert result.is_stable
        assert report.stability_description == "Excellent"
        assert report.stability_details
        assert report.speed_variation_pct == pytest.approx(8.0)

    def test_lossy_link_is_not_stable(self):
        report = analysis.build_report(speeds(48, 50, 52), latencies(20, 22, 24), 40)
        result = analysis.build_result(report, upload_mbps=30.0, packet_loss_pct=20.0)
        assert not result.is_stable

    def test_every_probe_failed(self):
        report = analysis.build_report(speeds(0, 0, 0), latencies(1000, 1000, 1000), 40)
        result = analysis.build_result(report, upload_mbps=0.02, packet_loss_pct=100.0)

        assert result.download_mbps == 0.1
        assert result.latency_ms == 1000
        assert result.jitter_ms == 0.0
        assert not result.is_stable
