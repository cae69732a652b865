"""Tests for ExtractionService heuristics."""

import pytest

from specwizard.domain.models.extraction import (
    FeaturesExtraction,
    OverviewExtraction,
)
from specwizard.services.extraction_service import ExtractionService, derive_user_intent


@pytest.fixture
def service():
    return ExtractionService()


@pytest.mark.parametrize(
    "text, topic",
    [
        ("I want to build a booking system for my hair salon", "overview"),
        ("Customers should be able to book appointments and pay", "features"),
        ("It should connect to Google Calendar", "integrations"),
        ("Pages need to load fast on phones", "non_functional"),
        ("Customers must not book more than one slot at a time", "rules"),
        ("First they pick a service, then they choose a stylist", "workflows"),
        ("The users are busy salon clients", "users"),
        ("Gift cards can come later", "mvp"),
    ],
)
def test_extract_topic(service, text, topic):
    extracted = service.extract_information(text)
    assert extracted is not None
    assert extracted.topic == topic


def test_features_are_split_into_items(service):
    extracted = service.extract_information(
        "Customers should be able to book appointments, pay online and get reminders"
    )

    assert isinstance(extracted, FeaturesExtraction)
    assert extracted.features == ["book appointments", "pay online", "get reminders"]


def test_named_integrations_are_listed(service):
    extracted = service.extract_information("We use Stripe and Mailchimp already")
    assert extracted.integrations == ["Stripe", "Mailchimp"]


def test_deferred_items_are_excluded_from_mvp(service):
    extracted = service.extract_information("Gift cards can come later")
    assert extracted.excluded
    assert extracted.included == []


def test_short_messages_yield_nothing(service):
    assert service.extract_information("ok") is None
    assert service.extract_information("   ") is None


def test_small_talk_yields_nothing(service):
    assert service.extract_information("hmm maybe sure") is None


def test_overview_keeps_the_whole_message(service):
    extracted = service.extract_information("I want to build a booking system for my hair salon")
    assert isinstance(extracted, OverviewExtraction)
    assert extracted.overview == "I want to build a booking system for my hair salon"


def test_derive_user_intent_from_specification(build_spec, complete_extractions):
    intent = derive_user_intent(build_spec("s1", *complete_extractions))

    assert intent.business_goal == "An online booking system for a hair salon"
    assert intent.target_users == ["Salon customers and stylists"]
    assert "send reminders" in intent.features
    assert intent.integrations == ["Stripe"]


def test_derive_user_intent_without_specification():
    intent = derive_user_intent(None)
    assert intent.business_goal is None
    assert intent.features == []


def test_bare_later_is_not_scope(service):
    assert service.extract_information("I'll tell you more later") is None


def test_later_release_is_deferred_scope(service):
    extracted = service.extract_information("Online payments can wait for a later release")
    assert extracted.topic == "mvp"
    assert extracted.excluded
