"""
Tests for Realization-Record Roll-Ups

The realization path derives every level from activity realization
records and must stay independent from indicator progress entries.
"""
from dataclasses import replace
from datetime import date, datetime

import pytest

from plan_rollup.core.error_taxonomy import IssueCategory, IssueLog
from plan_rollup.data.entities import Activity, ActivityRealizationRecord, EntityStatus
from plan_rollup.data.hierarchy_index import HierarchyIndex
from plan_rollup.tools.realization_aggregator import AlternateRealizationAggregator
from tests.plan_fixtures import make_snapshot, sample_snapshot


def _aggregator(snapshot):
    issues = IssueLog()
    index = HierarchyIndex.build(snapshot, issues=issues)
    return AlternateRealizationAggregator(snapshot, index, issues=issues)


class TestActivityCompletion:
    """Tests for activity-level realization."""

    def test_mean_of_records(self):
        agg = _aggregator(sample_snapshot())

        assert agg.activity_completion("act-i1") == pytest.approx(40.0)
        assert agg.activity_completion("act-direct") == pytest.approx(50.0)

    def test_latest_record(self):
        """The latest record is chosen by date, not by input order."""
        agg = _aggregator(sample_snapshot())

        assert agg.latest_activity_completion("act-i1") == 50
        assert [r.id for r in agg.records_for("act-i1")] == ["r1", "r2"]

    def test_mixed_date_and_datetime_records(self):
        """Records dated by day and by timestamp sort together on the calendar day."""
        snapshot = make_snapshot(
            activities=[Activity(id="a", target_id=None)],
            realization_records=[
                ActivityRealizationRecord(activity_id="a", completion_percentage=70,
                                          record_date=datetime(2024, 3, 1, 9, 30), id="late"),
                ActivityRealizationRecord(activity_id="a", completion_percentage=10,
                                          record_date=date(2024, 1, 15), id="early"),
                ActivityRealizationRecord(activity_id="a", completion_percentage=5, id="undated"),
            ],
        )
        agg = _aggregator(snapshot)

        assert [r.id for r in agg.records_for("a")] == ["undated", "early", "late"]
        assert agg.latest_activity_completion("a") == 70

    def test_no_records(self):
        agg = _aggregator(sample_snapshot())

        assert agg.activity_completion("nope") == 0
        assert agg.latest_activity_completion("nope") == 0
        assert agg.records_for("nope") == []

    def test_record_for_unknown_activity_is_recorded(self):
        snapshot = make_snapshot(
            realization_records=[ActivityRealizationRecord(activity_id="ghost", completion_percentage=10)],
        )
        agg = _aggregator(snapshot)

        assert agg.issues.by_category(IssueCategory.UNKNOWN_ENTITY)


class TestRealizationRollUp:
    """Tests for the levels above activity."""

    def test_indicator_is_average_of_its_activities(self):
        agg = _aggregator(sample_snapshot())

        assert agg.indicator_completion("i1") == pytest.approx(40.0)
        assert agg.indicator_completion("i2") == 0
        assert agg.indicator_completion("i3") == pytest.approx(80.0)

    def test_levels_of_sample_plan(self):
        agg = _aggregator(sample_snapshot())

        assert agg.target_completion("t1") == pytest.approx(45.0)
        assert agg.target_completion("t2") == pytest.approx(80.0)
        assert agg.objective_completion("o1") == pytest.approx(62.5)
        assert agg.area_completion("a1") == pytest.approx(62.5)
        assert agg.plan_completion() == pytest.approx(62.5)

    def test_ignores_progress_entries(self):
        """Removing every progress entry leaves the realization path unchanged."""
        snapshot = sample_snapshot()
        without_entries = make_snapshot(**{
            name: getattr(snapshot, name) for name in snapshot.COLLECTIONS if name != "progress_entries"
        })

        assert _aggregator(without_entries).plan_completion() == _aggregator(snapshot).plan_completion()

    def test_cancelled_activity_is_excluded(self):
        snapshot = sample_snapshot()
        activities = tuple(
            replace(a, status=EntityStatus.CANCELLED) if a.id == "act-direct" else a
            for a in snapshot.activities
        )
        agg = _aggregator(make_snapshot(**{
            **{name: getattr(snapshot, name) for name in snapshot.COLLECTIONS},
            "activities": activities,
        }))

        assert agg.rollup.activity_completion("act-direct") == 0
        # t1 now only has i1 (40) active
        assert agg.target_completion("t1") == pytest.approx(40.0)
