# btwrap/payments/types.py
from __future__ import annotations
from typing import Protocol, Optional, Dict, Any, List

# Vendor validation codes both providers report
CUSTOMER_ID_IN_USE = "91609"
SUBSCRIPTION_ALREADY_CANCELED = "81905"
PAYMENT_METHOD_NONCE_UNKNOWN = "91565"


class PaymentProvider(Protocol):
    """
    Synchronous vendor surface. Every method returns plain dicts shaped like
    the models in btwrap.schemas.api_models and raises btwrap.core.errors
    subclasses for failures it recognizes.
    """

    # --- auth ---
    def generate_client_token(self, *, customer_id: Optional[str] = None) -> str: ...

    # --- transactions ---
    def create_transaction(
        self, *, amount: str, payment_method_nonce: str, submit_for_settlement: bool
    ) -> Dict[str, Any]: ...

    def clone_transaction(
        self, *, transaction_id: str, amount: str, submit_for_settlement: bool
    ) -> Dict[str, Any]: ...

    # --- customers ---
    def create_customer(self, *, params: Dict[str, Any]) -> Dict[str, Any]: ...
    def find_customer(self, customer_id: str) -> Dict[str, Any]: ...
    def update_customer(self, *, customer_id: str, params: Dict[str, Any]) -> Dict[str, Any]: ...
    def delete_customer(self, customer_id: str) -> None: ...

    # --- payment methods ---
    def create_payment_method(
        self, *, customer_id: str, payment_method_nonce: str, make_default: bool
    ) -> Dict[str, Any]: ...

    def find_payment_method(self, token: str) -> Dict[str, Any]: ...

    # --- plans ---
    def list_plans(self) -> List[Dict[str, Any]]: ...

    # --- subscriptions ---
    def create_subscription(
        self, *, plan_id: str, payment_method_token: str, price: Optional[str]
    ) -> Dict[str, Any]: ...

    def find_subscription(self, subscription_id: str) -> Dict[str, Any]: ...
    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]: ...
