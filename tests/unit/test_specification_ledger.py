"""Tests for SpecificationLedger."""

import pytest

from specwizard.domain.models.extraction import (
    FeaturesExtraction,
    IntegrationsExtraction,
    MvpExtraction,
    NonFunctionalExtraction,
    OverviewExtraction,
    RulesExtraction,
    UserIntent,
    UsersExtraction,
    WorkflowsExtraction,
)
from specwizard.domain.models.message import assistant_message, user_message
from specwizard.domain.models.specification import (
    Priority,
    ProjectComplexity,
    Specification,
    empty_specification,
)
from specwizard.services.specification_ledger import (
    CORE_TOPICS,
    EARS_PATTERN,
    SpecificationLedger,
    find_view_divergence,
    translate_business_to_technical,
)


@pytest.fixture
def ledger():
    return SpecificationLedger()


class TestUpdateSpecification:
    def test_first_update_from_none_is_version_one(self, ledger):
        spec = ledger.update_specification(
            None, OverviewExtraction(overview="A salon booking site"), session_id="s1"
        )

        assert spec.id == "s1"
        assert spec.version == 1
        assert spec.plain_summary.overview == "A salon booking site"

    def test_requires_session_id_without_current(self, ledger):
        with pytest.raises(ValueError):
            ledger.update_specification(None, OverviewExtraction(overview="x"))

    def test_versions_strictly_increase_by_one(self, ledger):
        """n sequential updates from nothing end at version n."""
        extractions = [
            OverviewExtraction(overview="A salon booking site"),
            FeaturesExtraction(features=["book appointments"]),
            FeaturesExtraction(features=["book appointments"]),
            UsersExtraction(target_users="Salon customers"),
            RulesExtraction(rules=["bookings close at 6pm"]),
        ]
        spec = None
        versions = []
        for extracted in extractions:
            spec = ledger.update_specification(spec, extracted, session_id="s1")
            versions.append(spec.version)

        assert versions == [1, 2, 3, 4, 5]

    def test_update_from_empty_specification(self, ledger):
        empty = empty_specification("s1")
        spec = ledger.update_specification(empty, UsersExtraction(target_users="Stylists"))
        assert spec.version == 1
        assert spec.id == "s1"

    def test_inputs_are_not_modified(self, ledger, build_spec):
        current = build_spec("s1", FeaturesExtraction(features=["book appointments"]))
        snapshot = current.model_copy(deep=True)

        ledger.update_specification(current, FeaturesExtraction(features=["send reminders"]))

        assert current == snapshot

    def test_features_merge_without_duplicates(self, build_spec):
        spec = build_spec(
            "s1",
            FeaturesExtraction(features=["book appointments", "send reminders"]),
            FeaturesExtraction(features=["Book appointments", "take payments"]),
        )
        assert spec.plain_summary.key_features == [
            "book appointments",
            "send reminders",
            "take payments",
        ]

    def test_every_feature_has_a_requirement(self, build_spec):
        spec = build_spec(
            "s1", FeaturesExtraction(features=["book appointments", "upload photos"])
        )

        stories = [r.user_story for r in spec.formal_document.requirements]
        assert any("book appointments" in s for s in stories)
        assert any("upload photos" in s for s in stories)

    def test_acceptance_criteria_use_ears_wording(self, build_spec, complete_extractions):
        spec = build_spec(
            "s1",
            *complete_extractions,
            RulesExtraction(rules=["a stylist has one client per slot"]),
        )
        criteria = [
            c for r in spec.formal_document.requirements for c in r.acceptance_criteria
        ]
        assert criteria
        assert all(EARS_PATTERN.match(c) for c in criteria)

    def test_views_agree_after_every_topic(self, build_spec, complete_extractions):
        spec = None
        for extracted in complete_extractions + [
            RulesExtraction(rules=["payments are taken at booking time"]),
            MvpExtraction(included=["book appointments"], excluded=["gift cards"]),
        ]:
            spec = build_spec("s1", extracted, current=spec)
            assert find_view_divergence(spec) == []

    def test_mvp_exclusions_become_nice_to_have(self, build_spec):
        spec = build_spec(
            "s1",
            FeaturesExtraction(features=["book appointments"]),
            MvpExtraction(included=["book appointments"], excluded=["gift cards"]),
        )

        priorities = {
            r.user_story: r.priority for r in spec.formal_document.requirements
        }
        gift = next(p for story, p in priorities.items() if "gift cards" in story)
        booking = next(p for story, p in priorities.items() if "book appointments" in story)
        assert gift == Priority.NICE_TO_HAVE
        assert booking == Priority.MUST_HAVE

    def test_mvp_latest_statement_wins(self, build_spec):
        spec = build_spec(
            "s1",
            MvpExtraction(excluded=["gift cards"]),
            MvpExtraction(included=["gift cards"]),
        )
        assert spec.plain_summary.mvp_definition.included == ["gift cards"]
        assert spec.plain_summary.mvp_definition.excluded == []

    def test_glossary_names_the_system(self, ledger):
        spec = ledger.update_specification(
            None,
            OverviewExtraction(overview="Booking for salons"),
            history=[user_message("I need the app to take bookings")],
            session_id="s1",
        )
        assert spec.formal_document.glossary["System"] == "The app being specified"

    def test_complexity_is_estimated(self, build_spec):
        spec = build_spec("s1", FeaturesExtraction(features=["book appointments"]))
        assert spec.plain_summary.estimated_complexity == ProjectComplexity.SIMPLE

    def test_uses_injected_clock(self, clock):
        ledger = SpecificationLedger(clock=clock)
        expected = clock.now
        spec = ledger.update_specification(
            None, OverviewExtraction(overview="x"), session_id="s1"
        )
        assert spec.last_updated == expected

    def test_specification_survives_json_round_trip(self, build_spec, complete_extractions):
        spec = build_spec("s1", *complete_extractions)
        assert Specification.model_validate_json(spec.model_dump_json()) == spec


class TestGenerateFormalDocument:
    def test_login_feature_maps_to_authentication(self, ledger):
        document = ledger.generate_formal_document(UserIntent(features=["login"]))

        text = " ".join(r.text() for r in document.requirements)
        assert "authenticate" in text
        assert "session" in text

    def test_fast_request_yields_performance_requirement(self, ledger):
        document = ledger.generate_formal_document(
            UserIntent(), [user_message("The system needs to be fast")]
        )

        assert document.non_functional_requirements
        nfr = document.non_functional_requirements[0]
        assert nfr.category == "Performance"
        assert "respond" in nfr.description

    def test_quality_words_from_assistant_are_ignored(self, ledger):
        document = ledger.generate_formal_document(
            UserIntent(), [assistant_message("Should it be fast and secure?")]
        )
        assert document.non_functional_requirements == []

    def test_each_feature_yields_a_requirement(self, ledger):
        document = ledger.generate_formal_document(
            UserIntent(features=["search products", "pay online", "search products"])
        )
        assert len(document.requirements) == 2

    def test_empty_intent_is_valid(self, ledger):
        document = ledger.generate_formal_document(None)
        assert document.requirements == []
        assert document.introduction

    def test_business_goal_and_users_reach_introduction(self, ledger):
        document = ledger.generate_formal_document(
            UserIntent(business_goal="an online candle shop", target_users=["collectors"])
        )
        assert "an online candle shop" in document.introduction
        assert "collectors" in document.introduction


class TestGeneratePlainSummary:
    def test_summary_reads_features_back(self, ledger):
        document = ledger.generate_formal_document(
            UserIntent(
                business_goal="a salon booking site",
                target_users=["salon customers"],
                features=["book appointments"],
                integrations=["Stripe"],
            )
        )

        summary = ledger.generate_plain_summary(document)

        assert summary.overview == "a salon booking site"
        assert summary.target_users == "salon customers"
        assert "book appointments" in summary.key_features
        assert "Stripe" in summary.integrations

    def test_technical_needs_surface_as_integrations(self, ledger):
        document = ledger.generate_formal_document(UserIntent(features=["pay online"]))
        summary = ledger.generate_plain_summary(document)
        assert "Payment Gateway" in summary.integrations


class TestValidateCompleteness:
    def test_empty_specification_misses_every_topic(self, ledger):
        result = ledger.validate_completeness(empty_specification("s1"))

        assert result.is_complete is False
        assert result.missing_topics == CORE_TOPICS

    def test_complete_specification(self, ledger, build_spec, complete_extractions):
        result = ledger.validate_completeness(build_spec("s1", *complete_extractions))

        assert result.missing_topics == []
        assert result.ambiguous_requirements == []
        assert result.conflicting_requirements == []
        assert result.is_complete is True

    def test_vague_wording_is_ambiguous(self, ledger, build_spec, complete_extractions):
        spec = build_spec(
            "s1",
            *complete_extractions,
            FeaturesExtraction(features=["a simple checkout"]),
        )

        result = ledger.validate_completeness(spec)

        assert result.is_complete is False
        assert len(result.ambiguous_requirements) == 1

    def test_contradicting_rules_conflict(self, ledger, build_spec, complete_extractions):
        spec = build_spec(
            "s1",
            *complete_extractions,
            RulesExtraction(
                rules=[
                    "customers can cancel bookings online until the day before",
                    "customers cannot cancel bookings online the day before",
                ]
            ),
        )

        result = ledger.validate_completeness(spec)

        assert result.is_complete is False
        assert len(result.conflicting_requirements) == 1

    def test_unrelated_requirements_do_not_conflict(self, ledger, build_spec):
        spec = build_spec(
            "s1",
            FeaturesExtraction(features=["book appointments", "send reminders"]),
            RulesExtraction(rules=["no double bookings"]),
        )
        assert ledger.validate_completeness(spec).conflicting_requirements == []


@pytest.mark.parametrize(
    "feature, expected",
    [
        ("sign in with email", "authenticate"),
        ("search the catalog", "query the stored records"),
        ("checkout", "payment gateway"),
        ("upload menu PDFs", "file storage"),
        ("reserve a table", "booking"),
        ("loyalty points", "provide loyalty points"),
    ],
)
def test_translate_business_to_technical(feature, expected):
    assert expected in translate_business_to_technical(feature)


def test_divergence_detects_missing_requirement(build_spec):
    spec = build_spec("s1", FeaturesExtraction(features=["book appointments"]))
    broken = spec.model_copy(deep=True)
    broken.plain_summary.key_features.append("gift cards")

    problems = find_view_divergence(broken)

    assert any("gift cards" in p for p in problems)
