# btwrap/payments/fake_provider.py
from __future__ import annotations
from typing import Optional, Dict, Any, List, Iterable
import base64
import copy
import json
import threading
import uuid
from datetime import date, timedelta

from btwrap.core.errors import DuplicateError, NotFoundError, ValidationError
from btwrap.payments.types import (
    CUSTOMER_ID_IN_USE,
    PAYMENT_METHOD_NONCE_UNKNOWN,
    SUBSCRIPTION_ALREADY_CANCELED,
)


class FakeBraintreeProvider:
    """
    In-memory, protocol-compliant fake for tests/local runs.
    Mirrors the signatures in btwrap.payments.types.PaymentProvider.

    - Nonces: anything starting with "fake-valid" is accepted, everything else
      is rejected the way the sandbox rejects unknown nonces.
    - Customers: keyed by id; deleting one drops its payment methods and
      cancels the subscriptions billed to them.
    - Plans: seeded from `plan_ids`, read-only.
    - Safe to call from several worker threads at once.
    """

    VALID_NONCE_PREFIX = "fake-valid"

    def __init__(self, plan_ids: Iterable[str] = ("monthly", "annual")):
        self._lock = threading.Lock()
        # customer id -> customer dict (without paymentMethods)
        self.customers: Dict[str, Dict[str, Any]] = {}
        # token -> payment method dict
        self.payment_methods: Dict[str, Dict[str, Any]] = {}
        # transaction id -> dict
        self.transactions: Dict[str, Dict[str, Any]] = {}
        # subscription id -> dict
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.plans: List[Dict[str, Any]] = [self._plan(pid) for pid in plan_ids]
        # simple counters
        self._customer_counter: int = 0
        self._token_counter: int = 0
        self._txn_counter: int = 0
        self._sub_counter: int = 0

    # ----------------------- helpers -----------------------

    @staticmethod
    def _plan(plan_id: str) -> Dict[str, Any]:
        annual = "annual" in plan_id or "year" in plan_id
        return {
            "id": plan_id,
            "name": plan_id.replace("-", " ").replace("_", " ").title(),
            "price": "100.00" if annual else "10.00",
            "billingFrequency": 12 if annual else 1,
            "currencyIsoCode": "USD",
        }

    def _check_nonce(self, nonce: Optional[str]) -> None:
        if not nonce or not nonce.startswith(self.VALID_NONCE_PREFIX):
            raise ValidationError(
                "Unknown or expired payment_method_nonce.",
                errors=[{
                    "attribute": "payment_method_nonce",
                    "code": PAYMENT_METHOD_NONCE_UNKNOWN,
                    "message": "Unknown or expired payment_method_nonce.",
                }],
            )

    def _vault(self, customer_id: str, nonce: str, make_default: bool) -> Dict[str, Any]:
        # caller holds the lock
        self._check_nonce(nonce)
        self._token_counter += 1
        owned = [pm for pm in self.payment_methods.values() if pm["customerId"] == customer_id]
        default = make_default or not owned
        if default:
            for pm in owned:
                pm["default"] = False
        pm = {
            "token": f"pm_test_{self._token_counter}",
            "customerId": customer_id,
            "default": default,
            "cardType": "MasterCard" if "mastercard" in nonce else "Visa",
            "last4": "4444" if "mastercard" in nonce else "1111",
            "expirationDate": "12/2030",
            "imageUrl": None,
        }
        self.payment_methods[pm["token"]] = pm
        return dict(pm)

    def _customer_view(self, customer_id: str) -> Dict[str, Any]:
        view = dict(self.customers[customer_id])
        view["paymentMethods"] = [
            dict(pm) for pm in self.payment_methods.values() if pm["customerId"] == customer_id
        ]
        return view

    @staticmethod
    def _apply(target: Dict[str, Any], params: Dict[str, Any]) -> None:
        mapping = {
            "first_name": "firstName",
            "last_name": "lastName",
            "email": "email",
            "company": "company",
            "phone": "phone",
        }
        for key, field in mapping.items():
            if key in params:
                target[field] = params[key]

    # ------------------------ auth -------------------------

    def generate_client_token(self, *, customer_id: Optional[str] = None) -> str:
        if customer_id is not None:
            with self._lock:
                if customer_id not in self.customers:
                    raise NotFoundError(f"customer '{customer_id}' not found")
        payload = {
            "version": 2,
            "authorizationFingerprint": uuid.uuid4().hex,
            "environment": "fake",
            "customerId": customer_id,
        }
        return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")

    # -------------------- transactions ---------------------

    def _record_transaction(self, *, amount: str, submit_for_settlement: bool, **context) -> Dict[str, Any]:
        self._txn_counter += 1
        txn = {
            "id": f"txn_test_{self._txn_counter}",
            "amount": amount,
            "status": "submitted_for_settlement" if submit_for_settlement else "authorized",
            "type": "sale",
            "currencyIsoCode": "USD",
            "customerId": context.get("customerId"),
            "paymentMethodToken": context.get("paymentMethodToken"),
        }
        self.transactions[txn["id"]] = txn
        return dict(txn)

    def create_transaction(
        self, *, amount: str, payment_method_nonce: str, submit_for_settlement: bool = False
    ) -> Dict[str, Any]:
        self._check_nonce(payment_method_nonce)
        with self._lock:
            return self._record_transaction(amount=amount, submit_for_settlement=submit_for_settlement)

    def clone_transaction(
        self, *, transaction_id: str, amount: str, submit_for_settlement: bool = False
    ) -> Dict[str, Any]:
        with self._lock:
            source = self.transactions.get(transaction_id)
            if not source:
                raise NotFoundError(f"transaction '{transaction_id}' not found")
            return self._record_transaction(
                amount=amount,
                submit_for_settlement=submit_for_settlement,
                customerId=source["customerId"],
                paymentMethodToken=source["paymentMethodToken"],
            )

    # --------------------- customers -----------------------

    def create_customer(self, *, params: Dict[str, Any]) -> Dict[str, Any]:
        nonce = params.get("payment_method_nonce")
        if nonce is not None:
            self._check_nonce(nonce)
        with self._lock:
            cid = params.get("id")
            if not cid:
                self._customer_counter += 1
                cid = f"cus_test_{self._customer_counter}"
            if cid in self.customers:
                raise DuplicateError(
                    "Customer ID has already been taken.",
                    errors=[{"attribute": "id", "code": CUSTOMER_ID_IN_USE,
                             "message": "Customer ID has already been taken."}],
                )
            entry = {"id": cid, "firstName": None, "lastName": None, "email": None, "company": None, "phone": None}
            self._apply(entry, params)
            self.customers[cid] = entry
            if nonce is not None:
                self._vault(cid, nonce, make_default=True)
            return self._customer_view(cid)

    def find_customer(self, customer_id: str) -> Dict[str, Any]:
        with self._lock:
            if customer_id not in self.customers:
                raise NotFoundError(f"customer '{customer_id}' not found")
            return self._customer_view(customer_id)

    def update_customer(self, *, customer_id: str, params: Dict[str, Any]) -> Dict[str, Any]:
        nonce = params.get("payment_method_nonce")
        with self._lock:
            entry = self.customers.get(customer_id)
            if entry is None:
                raise NotFoundError(f"customer '{customer_id}' not found")
            if nonce is not None:
                self._check_nonce(nonce)
            self._apply(entry, params)
            if nonce is not None:
                self._vault(customer_id, nonce, make_default=True)
            return self._customer_view(customer_id)

    def delete_customer(self, customer_id: str) -> None:
        with self._lock:
            if self.customers.pop(customer_id, None) is None:
                raise NotFoundError(f"customer '{customer_id}' not found")
            tokens = {t for t, pm in self.payment_methods.items() if pm["customerId"] == customer_id}
            for token in tokens:
                del self.payment_methods[token]
            for sub in self.subscriptions.values():
                if sub["paymentMethodToken"] in tokens:
                    sub["status"] = "Canceled"

    # ------------------- payment methods -------------------

    def create_payment_method(
        self, *, customer_id: str, payment_method_nonce: str, make_default: bool = False
    ) -> Dict[str, Any]:
        with self._lock:
            if customer_id not in self.customers:
                raise NotFoundError(f"customer '{customer_id}' not found")
            return self._vault(customer_id, payment_method_nonce, make_default)

    def find_payment_method(self, token: str) -> Dict[str, Any]:
        with self._lock:
            pm = self.payment_methods.get(token)
            if pm is None:
                raise NotFoundError(f"payment method '{token}' not found")
            return dict(pm)

    # ----------------------- plans -------------------------

    def list_plans(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.plans)

    # ------------------- subscriptions ---------------------

    def create_subscription(
        self, *, plan_id: str, payment_method_token: str, price: Optional[str] = None
    ) -> Dict[str, Any]:
        plan = next((p for p in self.plans if p["id"] == plan_id), None)
        errors = []
        if plan is None:
            errors.append({"attribute": "plan_id", "code": "91904", "message": "Plan ID is invalid."})
        with self._lock:
            if payment_method_token not in self.payment_methods:
                errors.append({"attribute": "payment_method_token", "code": "91903",
                               "message": "Payment method token is invalid."})
            if errors:
                raise ValidationError(" ".join(e["message"] for e in errors), errors=errors)

            self._sub_counter += 1
            sub = {
                "id": f"sub_test_{self._sub_counter}",
                "status": "Active",
                "planId": plan_id,
                "paymentMethodToken": payment_method_token,
                "price": price or plan["price"],
                # naive 30-day cycle for fake
                "nextBillingDate": (date.today() + timedelta(days=30)).isoformat(),
            }
            self.subscriptions[sub["id"]] = sub
            return dict(sub)

    def find_subscription(self, subscription_id: str) -> Dict[str, Any]:
        with self._lock:
            sub = self.subscriptions.get(subscription_id)
            if sub is None:
                raise NotFoundError(f"subscription '{subscription_id}' not found")
            return dict(sub)

    def cancel_subscription(self, subscription_id: str) -> Dict[str, Any]:
        with self._lock:
            sub = self.subscriptions.get(subscription_id)
            if sub is None:
                raise NotFoundError(f"subscription '{subscription_id}' not found")
            if sub["status"] == "Canceled":
                raise ValidationError(
                    "Subscription has already been canceled.",
                    errors=[{"attribute": "status", "code": SUBSCRIPTION_ALREADY_CANCELED,
                             "message": "Subscription has already been canceled."}],
                )
            sub["status"] = "Canceled"
            sub["nextBillingDate"] = None
            return dict(sub)
