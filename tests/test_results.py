"""
Test suite for ATOP probe results, configuration, and feed files.
"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from atop_probe.config import DEFAULT_CONFIG, load_config, merge_config
from atop_probe.conflict_detection import ConflictProbe, ConflictRecord, Severity
from atop_probe.feed import load_records
from atop_probe.results import REPORT_COLUMNS, ConflictResults
from atop_probe.separation import TrackType


NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)
SAMPLE_FEED = project_root / "data" / "sample_feed.json"


def make_conflict(intruder, active, status, minutes, conflict_type=TrackType.CROSSING, vertical_act=0):
    return ConflictRecord(
        intruder_callsign=intruder,
        active_callsign=active,
        status=status,
        conflict_type=conflict_type,
        earliest_los=NOW + timedelta(minutes=minutes),
        latest_los=NOW + timedelta(minutes=minutes + 8),
        lateral_sep=23,
        vertical_sep=1000,
        vertical_act=vertical_act,
        track_angle=90.0,
        long_time_act=timedelta(minutes=8),
        long_dist_act=46.0,
        start_point=(-0.38, 1.0),
        end_point=(0.38, 1.0)
    )


@pytest.fixture
def results():
    return ConflictResults([
        make_conflict("ADV1", "ADV2", Severity.ADVISORY, 90, TrackType.SAME),
        make_conflict("IMM1", "IMM2", Severity.IMMINENT, 25),
        make_conflict("ACT1", "IMM1", Severity.ACTUAL, 0, vertical_act=500),
        make_conflict("IMM3", "IMM4", Severity.IMMINENT, 10, TrackType.RECIPROCAL),
    ], generated_at=NOW)


class TestConflictResults:

    def test_buckets_partition_all(self, results):
        assert len(results) == 4
        assert results.actual_count == 1
        assert results.imminent_count == 2
        assert results.advisory_count == 1
        assert results.actual_count + results.imminent_count + results.advisory_count == len(results.all)

    def test_scan_order_kept(self, results):
        assert [c.intruder_callsign for c in results] == ["ADV1", "IMM1", "ACT1", "IMM3"]

    def test_involving(self, results):
        assert {c.callsigns for c in results.involving("IMM1")} == {("IMM1", "IMM2"), ("ACT1", "IMM1")}
        assert results.involving("NOPE") == []

    def test_to_message(self, results):
        message = results.to_message()
        data = message['data']

        assert message['type'] == 'conflictResults'
        assert len(data['all']) == 4
        assert data['actualCount'] == 1
        assert data['imminentCount'] == 2
        assert data['advisoryCount'] == 1
        assert data['generatedAt'] == '2026-01-01T00:00:00Z'
        json.dumps(message)

    def test_generated_at_uses_wire_format(self):
        """generatedAt is written like the conflict instants, in UTC with a Z suffix."""
        sydney = timezone(timedelta(hours=10))
        message = ConflictResults([], generated_at=datetime(2026, 1, 1, 10, tzinfo=sydney)).to_message()
        assert message["data"]["generatedAt"] == "2026-01-01T00:00:00Z"

    def test_conflict_wire_format(self, results):
        conflict = results.actual[0].to_dict()

        assert conflict == {
            'intruderCallsign': 'ACT1',
            'activeCallsign': 'IMM1',
            'status': 'Actual',
            'conflictType': 'Crossing',
            'earliestLos': '2026-01-01T00:00:00Z',
            'latestLos': '2026-01-01T00:08:00Z',
            'latSep': 23,
            'verticalSep': 1000,
            'verticalAct': 500,
            'trkAngle': 90.0,
            'longTimeAct': 480.0,
            'longDistAct': 46.0,
        }

    def test_dataframe_sorted_by_severity_then_time(self, results):
        df = results.to_dataframe()

        assert list(df.columns) == REPORT_COLUMNS
        assert list(df['status'].astype(str)) == ["Actual", "Imminent", "Imminent", "Advisory"]
        assert list(df['intruderCallsign']) == ["ACT1", "IMM3", "IMM1", "ADV1"]

    def test_empty_dataframe(self):
        df = ConflictResults([], generated_at=NOW).to_dataframe()

        assert isinstance(df, pd.DataFrame)
        assert df.empty
        assert list(df.columns) == REPORT_COLUMNS

    def test_statistics(self, results):
        stats = results.get_statistics()

        assert stats['total_conflicts'] == 4
        assert stats['severity_breakdown'] == {'Actual': 1, 'Imminent': 2, 'Advisory': 1}
        assert stats['type_breakdown'] == {'Same': 1, 'Crossing': 2, 'Reciprocal': 1}
        assert stats['aircraft_involved'] == 7
        assert stats['earliest_los'] == NOW
        assert stats['min_vertical_act_ft'] == 0

    def test_empty_statistics(self):
        stats = ConflictResults().get_statistics()

        assert stats['total_conflicts'] == 0
        assert stats['earliest_los'] is None
        assert stats['min_vertical_act_ft'] is None


class TestConfig:

    def test_default_file_matches_defaults(self):
        assert load_config() == DEFAULT_CONFIG

    def test_load_partial_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'checkIntervalMs': 1000, 'colour': 'red'}))

        config = load_config(str(path))

        assert config['checkIntervalMs'] == 1000
        assert config['imminentThresholdMinutes'] == 30
        assert 'colour' not in config

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_merge_ignores_bad_values(self):
        config = merge_config(DEFAULT_CONFIG, {
            'checkIntervalMs': 'fast',
            'actualThresholdMinutes': True,
            'advisoryThresholdHours': 1.5,
        })

        assert config['checkIntervalMs'] == 5000
        assert config['actualThresholdMinutes'] == 1
        assert config['advisoryThresholdHours'] == 1.5

    def test_merge_does_not_modify_input(self):
        current = dict(DEFAULT_CONFIG)
        merge_config(current, {'checkIntervalMs': 1})
        assert current == DEFAULT_CONFIG

    def test_merge_none(self):
        assert merge_config(DEFAULT_CONFIG, None) == DEFAULT_CONFIG


class TestFeed:

    def test_sample_feed(self):
        records = load_records(SAMPLE_FEED)
        assert [r.callsign for r in records] == ["ANZ1", "QFA2", "UAL3", "JAL4"]
        assert sum(r.is_eligible for r in records) == 3

    def test_sample_feed_probe(self):
        """The sample traffic holds exactly one imminent crossing conflict."""
        results = ConflictProbe().probe(load_records(SAMPLE_FEED), now=NOW)

        assert len(results) == 1
        conflict = results.imminent[0]
        assert conflict.callsigns == ("ANZ1", "QFA2")
        assert conflict.conflict_type is TrackType.CROSSING

    def test_bare_list(self, tmp_path):
        path = tmp_path / "feed.json"
        path.write_text(json.dumps([{"Callsign": "A1"}, {"CFL": 350}]))
        assert [r.callsign for r in load_records(path)] == ["A1"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_records(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "feed.json"
        path.write_text("not json")
        with pytest.raises(ValueError):
            load_records(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "feed.json"
        path.write_text("42")
        with pytest.raises(ValueError):
            load_records(path)
