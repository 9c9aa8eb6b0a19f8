# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Parsing of GetUserStatus responses into QuotaSnapshot objects.

Response shape (only the fields we read):
    {
        "code": 0,                      # optional application status
        "userStatus": {
            "userTier": {"name": "Pro"},
            "planStatus": {
                "planInfo": {"planName": "...", "monthlyPromptCredits": int, ...},
                "availablePromptCredits": int,
                "availableFlowCredits": int,
            },
            "cascadeModelConfigData": {
                "clientModelConfigs": [
                    {
                        "label": "Claude Sonnet 4.5",
                        "modelOrAlias": {"model": "MODEL_..."},
                        "quotaInfo": {"remainingFraction": 0.8, "resetTime": "2025-..Z"},
                    },
                ]
            },
        }
    }
"""

import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..core.constants import (
    NO_RESET_SENTINEL_MS,
    OK_STATUS_CODES,
    UNKNOWN_RESET_FALLBACK_MS,
)
from ..core.errors import ApplicationError, ResponseParseError
from ..core.types import (
    CreditBalance,
    ModelQuota,
    ModelSummary,
    QuotaData,
    QuotaSnapshot,
)
from ..localization import t

INFINITE_RESET = "infinite"

# Protobuf timestamps may carry nanoseconds; datetime only takes micros
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def check_status_code(response: Any) -> None:
    """
    Raise ApplicationError if the response carries a non-OK status code.

    A missing code counts as OK.
    """
    if not isinstance(response, dict):
        return
    code = response.get("code")
    # 0 == False and 0 == 0.0, so match on type as well
    if code is None or any(
        type(code) is type(ok) and code == ok for ok in OK_STATUS_CODES
    ):
        return
    raise ApplicationError(
        f"Invalid code {code}: {response.get('message')}", code=code
    )


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp. Returns None if it cannot be parsed."""
    text = value.strip().replace("Z", "+00:00")
    text = _FRACTION_RE.sub(lambda m: f".{m.group(1)}", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_time_until_reset(ms: int) -> str:
    """Format a countdown, e.g. '2d3h from now' or '4m 10s from now'."""
    if ms >= NO_RESET_SENTINEL_MS:
        return t("quota.noReset")
    if ms <= 0:
        return t("quota.expired")
    seconds = ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d{hours % 24}h from now"
    if hours > 0:
        return f"{hours}h {minutes % 60}m from now"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s from now"
    return f"{seconds}s from now"


def _as_fraction(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_model_quota(config: Dict[str, Any], now: datetime) -> ModelQuota:
    quota_info = config.get("quotaInfo")
    if not isinstance(quota_info, dict):
        raise ResponseParseError(f"Malformed quotaInfo for {config.get('label')}")
    model_or_alias = config.get("modelOrAlias")
    if not isinstance(model_or_alias, dict) or "model" not in model_or_alias:
        raise ResponseParseError(f"Model config without modelOrAlias: {config.get('label')}")

    remaining_fraction = _as_fraction(quota_info.get("remainingFraction"))

    reset_raw = quota_info.get("resetTime")
    if not reset_raw or reset_raw == INFINITE_RESET:
        reset_time = None
        time_until_reset_ms = NO_RESET_SENTINEL_MS
    else:
        reset_time = parse_timestamp(str(reset_raw))
        if reset_time is None:
            reset_time = now + timedelta(milliseconds=UNKNOWN_RESET_FALLBACK_MS)
        time_until_reset_ms = int((reset_time - now).total_seconds() * 1000)

    model_id = str(model_or_alias["model"])
    return ModelQuota(
        model_id=model_id,
        label=config.get("label") or model_id,
        remaining_fraction=remaining_fraction,
        remaining_percentage=(
            remaining_fraction * 100 if remaining_fraction is not None else None
        ),
        is_exhausted=remaining_fraction is None or remaining_fraction == 0,
        reset_time=reset_time,
        time_until_reset_ms=time_until_reset_ms,
        time_until_reset_formatted=format_time_until_reset(time_until_reset_ms),
    )


def _credit_balance(available: Any, monthly: Any) -> Optional[CreditBalance]:
    if not isinstance(available, (int, float)) or not isinstance(monthly, (int, float)):
        return None
    return CreditBalance(available=int(available), monthly=int(monthly))


def _object(parent: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Return parent[key] as a dict. Missing or null yields {}."""
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ResponseParseError(f"{key} is not an object")
    return value


def parse_user_status(response: Any, now: Optional[datetime] = None) -> QuotaSnapshot:
    """
    Build a QuotaSnapshot from a GetUserStatus response.

    Only model configs carrying quotaInfo are included.

    Raises:
        ResponseParseError: userStatus is missing or malformed
    """
    if not isinstance(response, dict) or not isinstance(response.get("userStatus"), dict):
        raise ResponseParseError("Invalid response format")

    now = now or datetime.now(timezone.utc)
    user_status = response["userStatus"]

    model_data = _object(user_status, "cascadeModelConfigData")
    configs = model_data.get("clientModelConfigs") or []
    if not isinstance(configs, list):
        raise ResponseParseError("clientModelConfigs is not a list")

    models = [
        parse_model_quota(config, now)
        for config in configs
        if isinstance(config, dict) and config.get("quotaInfo")
    ]

    plan_status = _object(user_status, "planStatus")
    plan_info = _object(plan_status, "planInfo")
    plan_name = _object(user_status, "userTier").get("name") or plan_info.get("planName")

    return QuotaSnapshot(
        timestamp=now,
        models=models,
        plan_name=plan_name,
        prompt_credits=_credit_balance(
            plan_status.get("availablePromptCredits"), plan_info.get("monthlyPromptCredits")
        ),
        flow_credits=_credit_balance(
            plan_status.get("availableFlowCredits"), plan_info.get("monthlyFlowCredits")
        ),
    )


# =============================================================================
# DISPLAY VIEW
# =============================================================================


def _short_countdown(ms: int) -> str:
    if ms >= NO_RESET_SENTINEL_MS:
        return t("quota.noReset")
    if ms <= 0:
        return t("quota.expired")
    minutes = ms // 60000
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"


def to_quota_data(snapshot: QuotaSnapshot) -> QuotaData:
    """Flatten a snapshot for display code."""
    now = time.time()
    models = []
    for model in snapshot.models:
        ms = model.time_until_reset_ms
        has_countdown = 0 < ms < NO_RESET_SENTINEL_MS
        models.append(
            ModelSummary(
                id=model.model_id,
                name=model.label or model.model_id,
                pct=model.remaining_percentage or 0.0,
                time=_short_countdown(ms),
                reset_time=now + ms / 1000 if has_countdown else 0.0,
            )
        )
    return QuotaData(models=models, plan_name=snapshot.plan_name)
