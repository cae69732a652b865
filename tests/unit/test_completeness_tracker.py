"""Tests for CompletenessTracker."""

from datetime import datetime, timezone

import pytest

from specwizard.core.config import CompletenessConfig
from specwizard.domain.models.completeness import ProjectType, Topic, TopicStatus
from specwizard.domain.models.extraction import (
    FeaturesExtraction,
    NonFunctionalExtraction,
    OverviewExtraction,
    UsersExtraction,
)
from specwizard.domain.models.specification import ProjectComplexity, empty_specification
from specwizard.services.completeness_tracker import (
    CORE_TOPICS,
    CompletenessTracker,
    calculate_completeness,
)

CORE_IDS = {topic_id for topic_id, _, _ in CORE_TOPICS}


@pytest.fixture
def tracker():
    return CompletenessTracker()


def non_core_topic_ids(tracker, spec):
    progress = tracker.update_progress(spec)
    return {t.id for t in progress.topics} - CORE_IDS


class TestClassification:
    @pytest.mark.parametrize(
        "overview, expected",
        [
            ("A booking system for a hair salon", ProjectType.BOOKING_SYSTEM),
            ("An e-commerce shop for handmade candles", ProjectType.ECOMMERCE),
            ("A CRM to track leads for my agency", ProjectType.CRM),
            ("A mobile app for dog walkers on iOS", ProjectType.MOBILE_APP),
            ("A public REST API for weather data", ProjectType.API),
            ("A marketing website for my bakery", ProjectType.WEBSITE),
            ("Something to help my team", ProjectType.UNKNOWN),
        ],
    )
    def test_determine_project_type(self, tracker, build_spec, overview, expected):
        spec = build_spec("s1", OverviewExtraction(overview=overview))
        assert tracker.determine_project_type(spec) == expected

    def test_different_archetypes_expose_different_topics(self, tracker, build_spec):
        booking = build_spec(
            "s1", OverviewExtraction(overview="A booking system for a hair salon")
        )
        shop = build_spec(
            "s2", OverviewExtraction(overview="An e-commerce shop for handmade candles")
        )

        assert tracker.determine_complexity(booking) == tracker.determine_complexity(shop)
        assert non_core_topic_ids(tracker, booking) != non_core_topic_ids(tracker, shop)

    def test_complexity_tiers(self, tracker, build_spec):
        small = build_spec("s1", FeaturesExtraction(features=["book appointments"]))
        assert tracker.determine_complexity(small) == ProjectComplexity.SIMPLE

        bigger = build_spec(
            "s1",
            FeaturesExtraction(
                features=["book appointments", "send reminders", "take payments", "upload photos"]
            ),
            NonFunctionalExtraction(notes=["fast pages"]),
        )
        # 4 requirements + 1 nfr * 2 + 4 features * 0.5 = 8
        assert tracker.complexity_score(bigger) == 8
        assert tracker.determine_complexity(bigger) == ProjectComplexity.MEDIUM

    def test_tier_boundaries_come_from_config(self, build_spec):
        tracker = CompletenessTracker(CompletenessConfig(simple_max_score=0, medium_max_score=1))
        spec = build_spec("s1", FeaturesExtraction(features=["a", "b"]))
        assert tracker.determine_complexity(spec) == ProjectComplexity.COMPLEX


class TestEvaluate:
    def test_empty_specification_misses_core_topics(self, tracker):
        completeness, progress = tracker.evaluate(empty_specification("s1"))

        assert completeness.missing_sections == ["overview", "users", "features"]
        assert completeness.ready_for_handoff is False
        assert progress.overall_completeness == 0
        assert completeness.missing_sections == tracker.default_missing_sections()

    def test_complete_specification_is_ready(self, tracker, build_spec, complete_extractions):
        completeness, progress = tracker.evaluate(build_spec("s1", *complete_extractions))

        assert completeness.missing_sections == []
        assert completeness.ready_for_handoff is True
        assert progress.project_type == ProjectType.BOOKING_SYSTEM
        assert progress.overall_completeness == 100

    def test_short_overview_is_in_progress(self, tracker, build_spec):
        spec = build_spec("s1", OverviewExtraction(overview="A salon site"))

        completeness, progress = tracker.evaluate(spec)

        overview = next(t for t in progress.topics if t.id == "overview")
        assert overview.status == TopicStatus.IN_PROGRESS
        assert "overview" in completeness.missing_sections

    def test_missing_sections_keep_topic_order(self, tracker, build_spec):
        spec = build_spec("s1", UsersExtraction(target_users="Salon customers"))
        completeness, _ = tracker.evaluate(spec)
        assert completeness.missing_sections == ["overview", "features"]

    def test_evaluation_is_deterministic(self, tracker, build_spec, complete_extractions):
        spec = build_spec("s1", *complete_extractions)
        when = datetime(2026, 1, 5, tzinfo=timezone.utc)

        assert tracker.evaluate(spec, evaluated_at=when) == tracker.evaluate(
            spec, evaluated_at=when
        )

    def test_required_topics_have_no_duplicates(self, tracker):
        for project_type in ProjectType:
            for complexity in ProjectComplexity:
                ids = [t.id for t in tracker.required_topics(project_type, complexity)]
                assert len(ids) == len(set(ids))


class TestCalculateCompleteness:
    def test_no_topics(self):
        assert calculate_completeness([]) == 0

    def test_optional_topics_only(self):
        assert calculate_completeness([Topic(id="seo", name="SEO", required=False)]) == 100

    def test_in_progress_counts_half(self):
        topics = [
            Topic(id="a", name="A", status=TopicStatus.COMPLETE),
            Topic(id="b", name="B", status=TopicStatus.IN_PROGRESS),
            Topic(id="c", name="C"),
            Topic(id="d", name="D", status=TopicStatus.COMPLETE, required=False),
        ]
        assert calculate_completeness(topics) == 50
