"""
Tests for the pandas report frames
"""
import pandas as pd
import pytest

from config.settings import AppConfig
from plan_rollup.core.performance_engine import PlanPerformanceEngine
from plan_rollup.tools.activity_variance import ExpenseMatch
from plan_rollup.tools.report_frames import (
    HIERARCHY_COLUMNS,
    chapter_frame,
    completion_comparison_frame,
    hierarchy_frame,
    spend_distribution_frame,
    variance_frame,
)
from tests.plan_fixtures import make_snapshot, sample_snapshot


class TestReportFrames:
    """Frames reshape engine output without recomputing it."""

    @pytest.fixture
    def engine(self):
        return PlanPerformanceEngine(sample_snapshot(), config=AppConfig())

    def test_hierarchy_frame(self, engine):
        df = hierarchy_frame(engine.progress_breakdown())

        assert list(df.columns) == HIERARCHY_COLUMNS
        assert df.iloc[0]["entity_id"] == "a1"
        assert pd.isna(df.iloc[0]["parent_id"])
        i1 = df[df["entity_id"] == "i1"].iloc[0]
        assert i1["parent_id"] == "t1"
        assert i1["completion"] == pytest.approx(50.0)

    def test_chapter_frame_sorted_by_percentage(self, engine):
        df = chapter_frame(engine)

        assert list(df["chapter_id"]) == ["ch1", "ch2"]
        assert list(df["status"]) == ["Yellow", "Green"]

    def test_variance_frame(self, engine):
        df = variance_frame(engine)

        assert "chapter_breakdown" not in df.columns
        row = df.set_index("activity_id").loc["act-i1"]
        assert row["variance"] == 500
        assert row["status"] == "Over Budget"

        by_id = variance_frame(engine, ExpenseMatch.ID).set_index("activity_id")
        assert by_id.loc["act-i1", "actual_spending"] == 1500

    def test_spend_distribution_frame(self, engine):
        df = spend_distribution_frame(engine)

        assert len(df) == 2
        assert df["spent"].sum() == pytest.approx(3350.0)

    def test_completion_comparison_frame(self, engine):
        df = completion_comparison_frame(engine).set_index("area_id")

        assert df.loc["a1", "progress_completion"] == pytest.approx(75.0)
        assert df.loc["a1", "realization_completion"] == pytest.approx(62.5)
        assert df.loc["a1", "stored_completion"] == pytest.approx(20.0)

    def test_empty_engine(self):
        engine = PlanPerformanceEngine(make_snapshot(), config=AppConfig())

        assert chapter_frame(engine).empty
        assert hierarchy_frame([]).empty
        assert list(hierarchy_frame([]).columns) == HIERARCHY_COLUMNS
