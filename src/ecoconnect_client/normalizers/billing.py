from __future__ import annotations

from typing import Any

from ecoconnect_client.models.schemas import BillingPlan
from ecoconnect_client.normalizers.fields import coerce_number, ensure_dict, string_list

DEFAULT_CURRENCY = "EUR"
DEFAULT_INTERVAL = "/mois"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def determine_price(plan: dict[str, Any]) -> tuple[float, str] | None:
    """(price in currency units, period label); amounts are in cents."""
    if _is_number(plan.get("price")):
        return plan["price"], plan.get("priceDescriptor") or DEFAULT_INTERVAL
    if _is_number(plan.get("amount")):
        interval = plan.get("interval")
        return plan["amount"] / 100, f"/ {interval}" if interval else DEFAULT_INTERVAL
    amount = coerce_number(plan.get("priceAmount"))
    if amount:
        divisor = coerce_number(plan.get("priceDivisor")) or 100
        return amount / divisor, plan.get("priceIntervalLabel") or DEFAULT_INTERVAL
    return None


def normalize_plan(raw: Any, index: int = 0) -> BillingPlan | None:
    plan = ensure_dict(raw)
    if not plan:
        return None
    price = determine_price(plan)
    features = plan.get("features")
    if isinstance(features, dict):
        included = string_list(features.get("included"))
        excluded = string_list(features.get("excluded"))
    else:
        included, excluded = string_list(features), []
    return BillingPlan(
        id=str(plan.get("id") if plan.get("id") is not None else index),
        name=plan.get("name") or "Abonnement",
        price=price[0] if price else None,
        currency=plan.get("currency") or DEFAULT_CURRENCY,
        interval=price[1] if price else "",
        features=included,
        excluded_features=excluded,
        highlight=bool(plan.get("highlight")),
        prevent_selection=bool(plan.get("preventSelection")),
    )


def normalize_plans(payload: Any) -> list[BillingPlan]:
    if isinstance(payload, list):
        items = payload
    else:
        items = ensure_dict(payload).get("plans")
        items = items if isinstance(items, list) else []
    return [plan for index, item in enumerate(items) if (plan := normalize_plan(item, index)) is not None]


def default_plan(plans: list[BillingPlan]) -> BillingPlan | None:
    """Highlighted selectable plan, else the first selectable one, else the first."""
    if not plans:
        return None
    selectable = [plan for plan in plans if not plan.prevent_selection]
    highlighted = next((plan for plan in selectable if plan.highlight), None)
    return highlighted or (selectable[0] if selectable else plans[0])
