from __future__ import annotations
from typing import Optional, Dict, Any, List, Sequence, Type, TypeVar, Union, Callable
import asyncio

import pydantic
import structlog

from btwrap.core.errors import (
    DuplicateError,
    GatewayError,
    GatewayTimeoutError,
    NotFoundError,
    ValidationError,
    VendorError,
)
from btwrap.payments.types import PaymentProvider, SUBSCRIPTION_ALREADY_CANCELED
from btwrap.schemas.api_models import (
    ClientTokenResponse,
    CloneTransactionRequest,
    CreateCustomerRequest,
    CreatePaymentMethodRequest,
    CreateSubscriptionRequest,
    CreateTransactionRequest,
    Customer,
    CustomerAttributes,
    CustomerResponse,
    DeleteResponse,
    ErrorDetail,
    PaymentMethod,
    PaymentMethodResponse,
    Plan,
    PlanListResponse,
    Subscription,
    SubscriptionResponse,
    Transaction,
    TransactionResponse,
    format_amount,
)

log = structlog.get_logger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)
CustomerRef = Union[str, Dict[str, Any], pydantic.BaseModel]

DEFAULT_TIMEOUT_SECONDS = 8.0


def _coerce(model: Type[M], value: Any) -> M:
    """Accept a request model or a plain mapping; raise ValidationError on bad input."""
    if type(value) is model:
        return value
    if isinstance(value, pydantic.BaseModel):
        value = value.model_dump(exclude_unset=True)
    try:
        return model.model_validate(value)
    except pydantic.ValidationError as e:
        errors = [
            {"attribute": ".".join(str(p) for p in err["loc"]), "code": err["type"], "message": err["msg"]}
            for err in e.errors()
        ]
        first = errors[0] if errors else {"attribute": "", "message": "invalid input"}
        raise ValidationError(f"{first['attribute']}: {first['message']}", errors=errors) from None


def _require_id(value: Optional[str], what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{what} must be a non-empty string")
    return value


def _customer_id(ref: CustomerRef) -> str:
    if isinstance(ref, str):
        return _require_id(ref, "customer id")
    if isinstance(ref, pydantic.BaseModel):
        return _require_id(getattr(ref, "id", None), "customer id")
    return _require_id((ref or {}).get("id"), "customer id")


class GatewayClient:
    """
    Async facade over a PaymentProvider.

    Each operation maps onto one provider call, dispatched to a worker thread
    so the event loop never blocks, and bounded by `timeout` seconds. Failures
    surface as btwrap.core.errors.GatewayError subclasses; nothing is retried.

    Documented no-ops:
      - deleting a customer that does not exist
      - canceling a subscription that is already canceled
    """

    def __init__(self, provider: PaymentProvider, *, timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS):
        self.provider = provider
        self.timeout = timeout

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("gateway.timeout", operation=operation, timeout=self.timeout)
            raise GatewayTimeoutError(f"{operation} timed out after {self.timeout}s") from None
        except NotFoundError as e:
            log.info("gateway.not_found", operation=operation, message=e.message)
            raise
        except GatewayError as e:
            log.warning("gateway.error", operation=operation, error_type=e.type, message=e.message)
            raise

    # ---------------- client token ----------------

    async def generate_client_token(self, customer_id: Optional[str] = None) -> ClientTokenResponse:
        token = await self._call(
            "client_token.generate", self.provider.generate_client_token, customer_id=customer_id
        )
        if not isinstance(token, str) or not token:
            raise VendorError("Vendor returned an empty client token")
        return ClientTokenResponse(clientToken=token)

    # ---------------- transactions ----------------

    async def create_transaction(self, body: Union[CreateTransactionRequest, Dict[str, Any]]) -> TransactionResponse:
        req = _coerce(CreateTransactionRequest, body)
        txn = await self._call(
            "transaction.sale",
            self.provider.create_transaction,
            amount=format_amount(req.amount),
            payment_method_nonce=req.paymentMethodNonce,
            submit_for_settlement=req.submitForSettlement,
        )
        transaction = Transaction.model_validate(txn)
        log.info("transaction.created", transaction_id=transaction.id, amount=transaction.amount,
                 status=transaction.status)
        return TransactionResponse(transaction=transaction)

    async def clone_transaction(
        self, transaction_id: str, amount: Any, *, submit_for_settlement: bool = False
    ) -> TransactionResponse:
        _require_id(transaction_id, "transaction id")
        req = _coerce(CloneTransactionRequest, {"amount": amount, "submitForSettlement": submit_for_settlement})
        txn = await self._call(
            "transaction.clone",
            self.provider.clone_transaction,
            transaction_id=transaction_id,
            amount=format_amount(req.amount),
            submit_for_settlement=req.submitForSettlement,
        )
        transaction = Transaction.model_validate(txn)
        log.info("transaction.cloned", source_id=transaction_id, transaction_id=transaction.id,
                 amount=transaction.amount)
        return TransactionResponse(transaction=transaction)

    # ---------------- customers ----------------

    async def create_customer(self, body: Union[CreateCustomerRequest, Dict[str, Any]]) -> CustomerResponse:
        req = _coerce(CreateCustomerRequest, body)
        data = await self._call(
            "customer.create", self.provider.create_customer, params=req.to_vendor_params()
        )
        customer = Customer.model_validate(data)
        log.info("customer.created", customer_id=customer.id, payment_methods=len(customer.paymentMethods))
        return CustomerResponse(customer=customer)

    async def find_customer(self, customer_id: str) -> Customer:
        _require_id(customer_id, "customer id")
        data = await self._call("customer.find", self.provider.find_customer, customer_id)
        return Customer.model_validate(data)

    async def update_customer(
        self, customer_id: str, patch: Union[CustomerAttributes, Dict[str, Any]]
    ) -> CustomerResponse:
        _require_id(customer_id, "customer id")
        req = _coerce(CustomerAttributes, patch)
        data = await self._call(
            "customer.update",
            self.provider.update_customer,
            customer_id=customer_id,
            params=req.to_vendor_params(),
        )
        log.info("customer.updated", customer_id=customer_id, fields=sorted(req.model_fields_set))
        return CustomerResponse(customer=Customer.model_validate(data))

    async def delete_customer(self, customer_id: str) -> DeleteResponse:
        _require_id(customer_id, "customer id")
        try:
            await self._call("customer.delete", self.provider.delete_customer, customer_id)
        except NotFoundError:
            return DeleteResponse(id=customer_id, deleted=False)
        log.info("customer.deleted", customer_id=customer_id)
        return DeleteResponse(id=customer_id, deleted=True)

    async def find_one_and_update(
        self,
        customer_id: str,
        patch: Union[CustomerAttributes, Dict[str, Any]],
        upsert: bool = False,
    ) -> CustomerResponse:
        """
        Update the customer; when it does not exist and `upsert` is set,
        create it with `patch` applied in the same vendor call, so a rejected
        patch leaves nothing behind.
        """
        req = _coerce(CustomerAttributes, patch)
        try:
            return await self.update_customer(customer_id, req)
        except NotFoundError:
            if not upsert:
                raise
        try:
            return await self.create_customer(
                CreateCustomerRequest(id=customer_id, **req.model_dump(exclude_unset=True))
            )
        except DuplicateError:
            # created concurrently; apply the patch as an update instead
            log.info("customer.upsert_race", customer_id=customer_id)
        return await self.update_customer(customer_id, req)

    async def create_multiple_customers(
        self, bodies: Sequence[Union[CreateCustomerRequest, Dict[str, Any]]]
    ) -> List[CustomerResponse]:
        """
        Best-effort: every creation is attempted concurrently and each slot of
        the result (input order) reports its own outcome. Failed elements come
        back as `success=False` with `error`; successes are not rolled back.
        """
        async def _one(body) -> CustomerResponse:
            try:
                return await self.create_customer(body)
            except GatewayError as e:
                return CustomerResponse(success=False, error=ErrorDetail(**e.to_dict()))

        return list(await asyncio.gather(*(_one(b) for b in bodies)))

    async def delete_multiple_customers(self, refs: Sequence[CustomerRef]) -> List[DeleteResponse]:
        """
        Attempt every deletion before reporting. Missing customers are no-ops;
        the first real failure (a malformed ref included) is re-raised once all
        attempts have finished.
        """
        async def _one(ref: CustomerRef) -> DeleteResponse:
            return await self.delete_customer(_customer_id(ref))

        results = await asyncio.gather(*(_one(r) for r in refs), return_exceptions=True)
        for r in results:
            if isinstance(r, BaseException):
                raise r
        return list(results)

    # ---------------- payment methods ----------------

    async def create_payment_method(
        self, body: Union[CreatePaymentMethodRequest, Dict[str, Any]]
    ) -> PaymentMethodResponse:
        req = _coerce(CreatePaymentMethodRequest, body)
        data = await self._call(
            "payment_method.create",
            self.provider.create_payment_method,
            customer_id=req.customerId,
            payment_method_nonce=req.paymentMethodNonce,
            make_default=req.makeDefault,
        )
        pm = PaymentMethod.model_validate(data)
        log.info("payment_method.created", customer_id=req.customerId, token=pm.token)
        return PaymentMethodResponse(paymentMethod=pm, creditCard=pm if pm.cardType else None)

    async def find_payment_method(self, token: str) -> PaymentMethod:
        _require_id(token, "payment method token")
        data = await self._call("payment_method.find", self.provider.find_payment_method, token)
        return PaymentMethod.model_validate(data)

    # ---------------- plans ----------------

    async def find_all_plans(self) -> PlanListResponse:
        plans = await self._call("plan.all", self.provider.list_plans)
        return PlanListResponse(plans=[Plan.model_validate(p) for p in plans])

    # ---------------- subscriptions ----------------

    async def create_subscription(
        self, body: Union[CreateSubscriptionRequest, Dict[str, Any]]
    ) -> SubscriptionResponse:
        req = _coerce(CreateSubscriptionRequest, body)
        data = await self._call(
            "subscription.create",
            self.provider.create_subscription,
            plan_id=req.planId,
            payment_method_token=req.paymentMethodToken,
            price=format_amount(req.price) if req.price is not None else None,
        )
        sub = Subscription.model_validate(data)
        log.info("subscription.created", subscription_id=sub.id, plan_id=sub.planId, status=sub.status)
        return SubscriptionResponse(subscription=sub)

    async def find_subscription(self, subscription_id: str) -> Subscription:
        _require_id(subscription_id, "subscription id")
        data = await self._call("subscription.find", self.provider.find_subscription, subscription_id)
        return Subscription.model_validate(data)

    async def cancel_subscription(self, subscription_id: str) -> SubscriptionResponse:
        """Cancel; an already-canceled subscription is returned as-is."""
        _require_id(subscription_id, "subscription id")
        try:
            data = await self._call("subscription.cancel", self.provider.cancel_subscription, subscription_id)
        except ValidationError as e:
            if not any(err.get("code") == SUBSCRIPTION_ALREADY_CANCELED for err in e.errors):
                raise
            log.info("subscription.already_canceled", subscription_id=subscription_id)
            return SubscriptionResponse(subscription=await self.find_subscription(subscription_id))
        sub = Subscription.model_validate(data)
        log.info("subscription.canceled", subscription_id=sub.id, status=sub.status)
        return SubscriptionResponse(subscription=sub)
