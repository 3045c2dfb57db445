"""Tests for configuration, collaborator registries, errors and messages."""

import logging

import pytest

from pyqt_entitylist.core import ErrorKind, classify_error, format_error_message
from pyqt_entitylist.core.errors import fetch_error_from
from pyqt_entitylist.protocols import (
    EntityConfig,
    EntityEngineConfig,
    LoggingNotifier,
    SortKey,
    Toast,
    ToastVariant,
    get_engine_config,
    get_notifier,
    get_translator,
    normalize_sort,
    register_notifier,
    register_translator,
    set_engine_config,
)
from pyqt_entitylist.services import build_toast

from conftest import HttpError


def test_engine_config_defaults_and_override():
    assert get_engine_config().cache_ttl_ms == 300_000
    set_engine_config(EntityEngineConfig(max_retries=5))
    assert get_engine_config().max_retries == 5
    set_engine_config(None)
    assert get_engine_config().max_retries == 3


def test_backoff_is_exponential_and_capped():
    config = EntityEngineConfig()
    assert [config.backoff_delay_ms(n) for n in (1, 2, 3, 4, 5)] == [1000, 2000, 4000, 8000, 8000]


def test_ttl_resolution():
    sdk = object()
    assert EntityConfig(sdk).resolve_ttl_ms(300, 120) == 300
    assert EntityConfig(sdk, high_churn=True).resolve_ttl_ms(300, 120) == 120
    assert EntityConfig(sdk, high_churn=True, cache_ttl_ms=5).resolve_ttl_ms(300, 120) == 5


def test_name_of_prefers_display_name():
    config = EntityConfig(object(), entity_name="Tariff")
    assert config.name_of({"id": 4, "code": "T-4"}) == "T-4"
    assert config.name_of({"id": 4}) == "Tariff 4"
    custom = EntityConfig(object(), display_name=lambda item: f"{item['first']} {item['last']}")
    assert custom.name_of({"first": "Anna", "last": "Keller"}) == "Anna Keller"


def test_sort_key_parsing():
    assert SortKey.from_dict({"key": "name"}) == SortKey("name")
    with pytest.raises(ValueError):
        SortKey.from_dict({"desc": True})
    assert normalize_sort([SortKey("a"), {"id": "b", "desc": True}, {"bogus": 1}, "c"]) == [
        SortKey("a"), SortKey("b", True),
    ]


def test_notifier_registry_defaults_to_logging(caplog):
    assert isinstance(get_notifier(), LoggingNotifier)
    with caplog.at_level(logging.WARNING):
        get_notifier().toast(Toast("Careful", "something", ToastVariant.WARNING))
    assert "Careful" in caplog.text

    toasts = []

    class Recorder:
        def toast(self, toast):
            toasts.append(toast)

    register_notifier(Recorder())
    get_notifier().toast(Toast("Hi"))
    assert toasts == [Toast("Hi")]


# ========== Errors ==========

@pytest.mark.parametrize("exc, kind", [
    (HttpError(429), ErrorKind.RATE_LIMIT),
    (Exception("Rate limit exceeded"), ErrorKind.RATE_LIMIT),
    (ConnectionError("reset"), ErrorKind.NETWORK),
    (TimeoutError(), ErrorKind.NETWORK),
    (Exception("Network Error"), ErrorKind.NETWORK),
    (HttpError(500, "boom"), ErrorKind.FATAL),
    (ValueError("bad"), ErrorKind.FATAL),
])
def test_classify_error(exc, kind):
    assert classify_error(exc) is kind
    assert kind.transient is (kind is not ErrorKind.FATAL)


def test_format_error_message_uses_response_details():
    assert format_error_message(ValueError("Explicit")) == "Explicit"
    assert format_error_message(HttpError(404)) == "The requested resource was not found"

    with_data = HttpError(422)
    with_data.response.data = {"errors": [{"message": "name required"}, "code invalid"]}
    assert format_error_message(with_data) == "name required, code invalid"
    assert format_error_message(None) == "An unknown error occurred"


def test_fetch_error_falls_back_to_entity_message():
    error = fetch_error_from("tariffs", Exception(), "Tariffs")
    assert error.user_message == "Failed to fetch Tariffs."
    assert not error.transient


# ========== Messages ==========

def test_build_toast_renders_params():
    toast = build_toast("bulk.delete_completed", success_count=3, fail_count=1)
    assert toast.title == "Delete Completed"
    assert toast.description == "3 deleted, 1 failed."
    assert toast.variant is ToastVariant.SUCCESS


def test_build_toast_goes_through_translator():
    def translate(key, default, **params):
        if key == "bulk.select_one_to_edit.title":
            return "Bitte nur einen Eintrag wählen"
        return default

    register_translator(translate)
    assert get_translator() is translate
    toast = build_toast("bulk.select_one_to_edit", entity="Arzt")
    assert toast.title == "Bitte nur einen Eintrag wählen"
    assert toast.description == "Please select only one Arzt to edit."
