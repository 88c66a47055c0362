from typing import Any

from ecoconnect_client.http.client import ApiClient


def fetch_billing_plans(client: ApiClient) -> Any:
    return client.get("/billing/plans")


def create_payment_intent(
    client: ApiClient,
    plan_id: str,
    payment_method_type: str = "card",
    billing_details: dict[str, Any] | None = None,
) -> Any:
    return client.post(
        "/billing/payment-intents",
        json={
            "planId": plan_id,
            "paymentMethodType": payment_method_type,
            "billingDetails": billing_details,
        },
    )


def create_paypal_session(client: ApiClient, plan_id: str) -> Any:
    return client.post("/billing/paypal/session", json={"planId": plan_id})
