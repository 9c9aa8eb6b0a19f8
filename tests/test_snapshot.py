from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_user_status
from quota_watcher.core.constants import NO_RESET_SENTINEL_MS
from quota_watcher.core.errors import ApplicationError, ResponseParseError
from quota_watcher.client.snapshot import (
    check_status_code,
    format_time_until_reset,
    parse_timestamp,
    parse_user_status,
    to_quota_data,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _model(label="Gemini 3 Pro", model="MODEL_GEMINI_3_PRO", **quota):
    return {"label": label, "modelOrAlias": {"model": model}, "quotaInfo": quota}


@pytest.mark.parametrize("code", [None, 0, "0", "OK", "Ok", "ok", "success", "SUCCESS"])
def test_ok_status_codes_pass(code) -> None:
    response = {"userStatus": {}}
    if code is not None:
        response["code"] = code
    check_status_code(response)


def test_other_status_codes_raise() -> None:
    with pytest.raises(ApplicationError, match="Invalid code 5: not logged in") as excinfo:
        check_status_code({"code": 5, "message": "not logged in"})
    assert excinfo.value.code == 5


@pytest.mark.parametrize("code", [False, 0.0, "0.0"])
def test_lookalike_status_codes_raise(code) -> None:
    with pytest.raises(ApplicationError):
        check_status_code({"code": code})


@pytest.mark.parametrize("field", ["userTier", "planStatus", "cascadeModelConfigData"])
def test_non_object_sections_are_parse_errors(field: str) -> None:
    response = make_user_status()
    response["userStatus"][field] = "Pro"
    with pytest.raises(ResponseParseError, match=field):
        parse_user_status(response, now=NOW)


def test_non_object_plan_info_is_parse_error() -> None:
    response = make_user_status()
    response["userStatus"]["planStatus"] = {"planInfo": ["Pro"]}
    with pytest.raises(ResponseParseError, match="planInfo"):
        parse_user_status(response, now=NOW)


def test_missing_user_status_is_parse_error() -> None:
    with pytest.raises(ResponseParseError, match="Invalid response format"):
        parse_user_status({"code": 0}, now=NOW)
    with pytest.raises(ResponseParseError):
        parse_user_status([], now=NOW)


def test_parses_model_quota() -> None:
    response = make_user_status(
        [_model(remainingFraction=0.4, resetTime="2025-06-01T14:30:00Z")]
    )
    snapshot = parse_user_status(response, now=NOW)

    assert snapshot.timestamp == NOW
    assert snapshot.plan_name == "Pro"
    [model] = snapshot.models
    assert model.model_id == "MODEL_GEMINI_3_PRO"
    assert model.label == "Gemini 3 Pro"
    assert model.remaining_fraction == 0.4
    assert model.remaining_percentage == pytest.approx(40.0)
    assert not model.is_exhausted
    assert model.reset_time == NOW + timedelta(hours=2, minutes=30)
    assert model.time_until_reset_ms == 9_000_000
    assert model.time_until_reset_formatted == "2h 30m from now"


def test_models_without_quota_info_are_skipped() -> None:
    response = make_user_status(
        [
            {"label": "Tab", "modelOrAlias": {"model": "MODEL_TAB"}},
            _model(remainingFraction=1, resetTime="2025-06-02T12:00:00Z"),
        ]
    )
    snapshot = parse_user_status(response, now=NOW)
    assert [m.model_id for m in snapshot.models] == ["MODEL_GEMINI_3_PRO"]
    assert snapshot.models[0].time_until_reset_formatted == "1d0h from now"


def test_infinite_reset_uses_sentinel() -> None:
    snapshot = parse_user_status(
        make_user_status([_model(remainingFraction=1.0, resetTime="infinite")]), now=NOW
    )
    [model] = snapshot.models
    assert model.reset_time is None
    assert model.time_until_reset_ms == NO_RESET_SENTINEL_MS
    assert model.time_until_reset_formatted == "No reset"


def test_absent_fraction_means_exhausted() -> None:
    snapshot = parse_user_status(
        make_user_status([_model(resetTime="2025-06-01T13:00:00Z")]), now=NOW
    )
    [model] = snapshot.models
    assert model.remaining_fraction is None
    assert model.remaining_percentage is None
    assert model.is_exhausted


def test_zero_fraction_is_exhausted() -> None:
    snapshot = parse_user_status(
        make_user_status([_model(remainingFraction=0, resetTime="2025-06-01T13:00:00Z")]),
        now=NOW,
    )
    assert snapshot.models[0].is_exhausted
    assert snapshot.models[0].remaining_percentage == 0


def test_unparsable_reset_falls_back_to_a_day() -> None:
    snapshot = parse_user_status(
        make_user_status([_model(remainingFraction=0.5, resetTime="next tuesday")]), now=NOW
    )
    [model] = snapshot.models
    assert model.reset_time == NOW + timedelta(hours=24)
    assert model.time_until_reset_ms == 24 * 3600 * 1000


def test_past_reset_is_expired() -> None:
    snapshot = parse_user_status(
        make_user_status([_model(remainingFraction=0.5, resetTime="2025-06-01T11:00:00Z")]),
        now=NOW,
    )
    assert snapshot.models[0].time_until_reset_ms < 0
    assert snapshot.models[0].time_until_reset_formatted == "Expired"


def test_malformed_model_entries_raise() -> None:
    with pytest.raises(ResponseParseError):
        parse_user_status(
            make_user_status([{"label": "x", "quotaInfo": {"remainingFraction": 1}}]), now=NOW
        )
    with pytest.raises(ResponseParseError):
        parse_user_status(
            make_user_status([{"label": "x", "modelOrAlias": {"model": "M"}, "quotaInfo": "full"}]),
            now=NOW,
        )


def test_plan_name_falls_back_to_plan_info() -> None:
    response = make_user_status(tier=None)
    response["userStatus"]["planStatus"] = {"planInfo": {"planName": "Teams"}}
    assert parse_user_status(response, now=NOW).plan_name == "Teams"


def test_credit_balances() -> None:
    response = make_user_status()
    response["userStatus"]["planStatus"] = {
        "planInfo": {"monthlyPromptCredits": 500, "monthlyFlowCredits": 1000},
        "availablePromptCredits": 125,
    }
    snapshot = parse_user_status(response, now=NOW)

    assert snapshot.prompt_credits is not None
    assert snapshot.prompt_credits.available == 125
    assert snapshot.prompt_credits.monthly == 500
    assert snapshot.prompt_credits.remaining_fraction == pytest.approx(0.25)
    assert snapshot.flow_credits is None


def test_parse_timestamp_variants() -> None:
    assert parse_timestamp("2025-06-01T12:00:00Z") == NOW
    assert parse_timestamp("2025-06-01T12:00:00.123456789Z") == NOW.replace(microsecond=123456)
    assert parse_timestamp("2025-06-01T12:00:00") == NOW
    assert parse_timestamp("garbage") is None


@pytest.mark.parametrize(
    "ms, expected",
    [
        (45_000, "45s from now"),
        (61_000, "1m 1s from now"),
        (3_660_000, "1h 1m from now"),
        (90_000_000, "1d1h from now"),
        (0, "Expired"),
        (NO_RESET_SENTINEL_MS, "No reset"),
    ],
)
def test_format_time_until_reset(ms: int, expected: str) -> None:
    assert format_time_until_reset(ms) == expected


def test_to_quota_data_flattens_models() -> None:
    response = make_user_status(
        [
            _model(remainingFraction=0.5, resetTime="2025-06-01T13:30:00Z"),
            _model(label="", model="MODEL_OTHER", remainingFraction=1.0, resetTime="infinite"),
        ]
    )
    data = to_quota_data(parse_user_status(response, now=NOW))

    assert data.plan_name == "Pro"
    assert not data.needs_login
    first, second = data.models
    assert first.name == "Gemini 3 Pro"
    assert first.pct == pytest.approx(50.0)
    assert first.time == "1h 30m"
    assert first.reset_time > 0
    assert second.name == "MODEL_OTHER"
    assert second.time == "No reset"
    assert second.reset_time == 0.0
