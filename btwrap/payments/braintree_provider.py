from __future__ import annotations
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional, Dict, Any, List, Iterator
import braintree
from braintree.exceptions import (
    AuthenticationError,
    AuthorizationError,
    GatewayTimeoutError,
    NotFoundError as BraintreeNotFoundError,
    RequestTimeoutError,
    ServerError,
    ServiceUnavailableError,
    TooManyRequestsError,
    UnexpectedError,
    UpgradeRequiredError,
)

from btwrap.core.errors import (
    DuplicateError,
    NetworkError,
    NotFoundError,
    ValidationError,
    VendorError,
)
from btwrap.payments.types import CUSTOMER_ID_IN_USE

_ENVIRONMENT_MAP = {
    "sandbox": braintree.Environment.Sandbox,
    "production": braintree.Environment.Production,
    "development": braintree.Environment.Development,
    "qa": braintree.Environment.QA,
}

# Codes reported when a payment method is attached to an unknown customer
_CUSTOMER_ID_INVALID = {"91705", "93105"}


# -------------------- serializers --------------------

def _money(v: Any) -> Optional[str]:
    if v is None:
        return None
    return f"{Decimal(str(v)):.2f}"


def _iso(v: Any) -> Optional[str]:
    if v is None:
        return None
    iso = getattr(v, "isoformat", None)
    return iso() if callable(iso) else str(v)


def _payment_method(pm: Any) -> Dict[str, Any]:
    return {
        "token": pm.token,
        "customerId": getattr(pm, "customer_id", None),
        "default": bool(getattr(pm, "default", False)),
        "cardType": getattr(pm, "card_type", None),
        "last4": getattr(pm, "last_4", None),
        "expirationDate": getattr(pm, "expiration_date", None),
        "imageUrl": getattr(pm, "image_url", None),
    }


def _customer(c: Any) -> Dict[str, Any]:
    methods = getattr(c, "payment_methods", None)
    if methods is None:
        methods = getattr(c, "credit_cards", None) or []
    return {
        "id": c.id,
        "firstName": getattr(c, "first_name", None),
        "lastName": getattr(c, "last_name", None),
        "email": getattr(c, "email", None),
        "company": getattr(c, "company", None),
        "phone": getattr(c, "phone", None),
        "paymentMethods": [_payment_method(pm) for pm in methods],
    }


def _transaction(t: Any) -> Dict[str, Any]:
    credit_card = getattr(t, "credit_card_details", None)
    return {
        "id": t.id,
        "amount": _money(t.amount),
        "status": t.status,
        "type": getattr(t, "type", None),
        "currencyIsoCode": getattr(t, "currency_iso_code", None),
        "customerId": getattr(getattr(t, "customer_details", None), "id", None),
        "paymentMethodToken": getattr(credit_card, "token", None),
    }


def _plan(p: Any) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": getattr(p, "name", None),
        "price": _money(getattr(p, "price", None)),
        "billingFrequency": getattr(p, "billing_frequency", None),
        "currencyIsoCode": getattr(p, "currency_iso_code", None),
    }


def _subscription(s: Any) -> Dict[str, Any]:
    return {
        "id": s.id,
        "status": s.status,
        "planId": getattr(s, "plan_id", None),
        "paymentMethodToken": getattr(s, "payment_method_token", None),
        "price": _money(getattr(s, "price", None)),
        "nextBillingDate": _iso(getattr(s, "next_billing_date", None)),
    }


def _deep_errors(result: Any) -> List[Dict[str, Any]]:
    errors = getattr(result, "errors", None)
    return [
        {"attribute": e.attribute, "code": e.code, "message": e.message}
        for e in (getattr(errors, "deep_errors", None) or [])
    ]


class BraintreePaymentProvider:
    def __init__(
        self,
        *,
        merchant_id: str = "",
        public_key: str = "",
        private_key: str = "",
        environment: str = "sandbox",
        timeout: float = 60.0,
        gateway: Optional[braintree.BraintreeGateway] = None,
    ):
        if gateway is None:
            env = _ENVIRONMENT_MAP.get(environment)
            if env is None:
                raise ValueError(f"Unsupported Braintree environment '{environment}'")
            gateway = braintree.BraintreeGateway(
                braintree.Configuration(
                    environment=env,
                    merchant_id=merchant_id,
                    public_key=public_key,
                    private_key=private_key,
                    timeout=timeout,
                )
            )
        self.gateway = gateway

    # --- error translation ---
    @staticmethod
    @contextmanager
    def _vendor_call(what: str) -> Iterator[None]:
        try:
            yield
        except BraintreeNotFoundError:
            raise NotFoundError(f"{what} not found") from None
        except (
            GatewayTimeoutError,
            RequestTimeoutError,
            ServiceUnavailableError,
            TooManyRequestsError,
            UnexpectedError,
        ) as e:
            raise NetworkError(f"{what}: {e.__class__.__name__} {e}".rstrip()) from e
        except (AuthenticationError, AuthorizationError, ServerError, UpgradeRequiredError) as e:
            raise VendorError(f"{what}: {e.__class__.__name__} {e}".rstrip()) from e

    @staticmethod
    def _unwrap(result: Any, what: str) -> Any:
        if result.is_success:
            return result
        errors = _deep_errors(result)
        codes = {e["code"] for e in errors}
        message = getattr(result, "message", None) or f"{what} was rejected"
        if CUSTOMER_ID_IN_USE in codes:
            raise DuplicateError(message, errors=errors)
        if codes & _CUSTOMER_ID_INVALID:
            raise NotFoundError(message, errors=errors)
        raise ValidationError(message, errors=errors)

    # --- auth ---
    def generate_client_token(self, *, customer_id: Optional[str] = None) -> str:
        params = {"customer_id": customer_id} if customer_id else None
        with self._vendor_call("client token"):
            return self.gateway.client_token.generate(params)

    # --- transactions ---
    def create_transaction(
        self, *, amount: str, payment_method_nonce: str, submit_for_settlement: bool = False
    ) -> Dict[str, Any]:
        with self._vendor_call("transaction"):
            result = self.gateway.transaction.sale({
                "amount": amount,
                "payment_method_nonce": payment_method_nonce,
                "options": {"submit_for_settlement": submit_for_settlement},
            })
        return _transaction(self._unwrap(result, "transaction").transaction)

    def clone_transaction(
        self, *, transaction_id: str, amount: str, submit_for_settlement: bool = False
    ) -> Dict[str, Any]:
        with self._vendor_call(f"transaction '{transaction_id}'"):
            result = self.gateway.transaction.clone(
                transaction_id,
                {"amount": amount, "options": {"submit_for_settlement": submit_for_settlement}},
            )
        return _transaction(self._unwrap(result, "transaction clone").transaction)

    # --- customers ---
    def create_customer(self, *, params: Dict[str, Any]) -> Dict[str, Any]:
        with self._vendor_call("customer"):
            result = self.gateway.customer.create(params)
        return _customer(self._unwrap(result, "customer").customer)

    def find_customer(self, customer_id: str) -> Dict[str, Any]:
        with self._vendor_call(f"customer '{customer_id}'"):
            return _customer(self.gateway.customer.find(customer_id))

    def update_customer(self, *, customer_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        with self._vendor_call(f"customer '{customer_id}'"):
            result = self.gateway.customer.update(customer_id, params)
        return _customer(self._unwrap(result, "customer update").customer)

    def delete_customer(self, customer_id: str) -> None:
        with self._vendor_call(f"customer '{customer_id}'"):
            result = self.gateway.customer.delete(customer_id)
        self._unwrap(result, "customer delete")

    # --- payment methods ---
    def create_payment_method(
        self, *, customer_id: str, payment_method_nonce: str, make_default: bool = False
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "customer_id": customer_id,
            "payment_method_nonce": payment_method_nonce,
        }
        if make_default:
            params["options"] = {"make_default": True}
        with self._vendor_call(f"customer '{customer_id}'"):
            result = self.gateway.payment_method.create(params)
        return _payment_method(self._unwrap(result, "payment method").payment_method)

    def find_payment_method(self, token: str) -> Dict[str, Any]:
        with self._vendor_call(f"payment method '{token}'"):
            return _payment_method(self.gateway.payment_method.find(token))

    # --- plans ---
    def list_plans(self) -> List[Dict[str, Any]]:
        with self._vendor_call("plans"):
            return [_plan(p) for p in self.gateway.plan.all()]

    # --- subscriptions ---
    def create_subscription(
        self, *, plan_id: str, payment_method_token: str, price: Optional[str] = None
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"plan_id": plan_id, "payment_method_token": payment_method_token}
        if price is not None:
            params["price"] = price
        with self._vendor_call("subscription"):
            result = self.gateway.subscription.create(params)
        return _subscription(self._unwrap(result, "subscription").subscription)

    def find_subscription(self, subscription_id: str) -> Dict[str, Any]:
        with self._vendor_call(f"subscription '{subscription_id}'"):
            return _subscription(self.gateway.subscription.find(subscription_id))

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        with self._vendor_call(f"subscription '{subscription_id}'"):
            result = self.gateway.subscription.cancel(subscription_id)
        return _subscription(self._unwrap(result, "subscription cancel").subscription)
