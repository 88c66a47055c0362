import logging
from typing import Any, Optional

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache, QueryOptions, QueryResult
from ecoconnect_client.errors import ApiError, ValidationError, error_message
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.models.schemas import BillingPlan
from ecoconnect_client.normalizers.billing import default_plan, normalize_plans
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.services import billing_api

logger = logging.getLogger(__name__)

PLANS_STALE_TIME = 5 * 60


class BillingView:
    """Subscription plans and checkout sessions; the payment providers stay out of scope."""

    def __init__(self, client: ApiClient, cache: QueryCache, notifier: Notifier) -> None:
        self.client = client
        self.cache = cache
        self.notifier = notifier

    def plans(self) -> QueryResult:
        return self.cache.query(
            keys.billing_plans(),
            lambda: normalize_plans(billing_api.fetch_billing_plans(self.client)),
            QueryOptions(stale_time=PLANS_STALE_TIME),
        )

    def default_plan(self) -> Optional[BillingPlan]:
        return default_plan(self.plans().data or [])

    def _selectable(self, plan_id: str) -> None:
        plans = self.plans().data or []
        plan = next((plan for plan in plans if plan.id == plan_id), None)
        if plan is not None and plan.prevent_selection:
            raise ValidationError("Cette offre n'est pas disponible en ligne")

    def create_payment_intent(
        self,
        plan_id: str,
        payment_method_type: str = "card",
        billing_details: Optional[dict[str, Any]] = None,
    ) -> Any:
        self._selectable(plan_id)
        try:
            return billing_api.create_payment_intent(
                self.client, plan_id, payment_method_type, billing_details
            )
        except ApiError as exc:
            logger.error("Error creating payment intent for %s: %s", plan_id, exc)
            self.notifier.error(
                error_message(exc, "Impossible d'initialiser le paiement")
            )
            raise

    def create_paypal_session(self, plan_id: str) -> Any:
        self._selectable(plan_id)
        try:
            return billing_api.create_paypal_session(self.client, plan_id)
        except ApiError as exc:
            logger.error("Error creating PayPal session for %s: %s", plan_id, exc)
            self.notifier.error(
                error_message(exc, "Impossible de créer la session PayPal")
            )
            raise
