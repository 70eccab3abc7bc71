from __future__ import annotations

from decimal import Decimal
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two decimal digits ("15" -> "15.00")."""
    return f"{amount.quantize(Decimal('0.01')):f}"


# camelCase field -> vendor parameter
_VENDOR_KEYS = {
    "id": "id",
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
    "company": "company",
    "phone": "phone",
    "paymentMethodNonce": "payment_method_nonce",
}


# -------------------------
# Requests
# -------------------------
class CustomerAttributes(BaseModel):
    """Partial customer attributes; only fields that were set reach the vendor."""

    model_config = ConfigDict(extra="forbid")

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    paymentMethodNonce: Optional[str] = Field(None, min_length=1)

    def to_vendor_params(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        return {_VENDOR_KEYS[k]: v for k, v in data.items()}


class CreateCustomerRequest(CustomerAttributes):
    id: str = Field(..., min_length=1)

    def to_vendor_params(self) -> Dict[str, Any]:
        params = super().to_vendor_params()
        params["id"] = self.id
        return params


class CreateTransactionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    paymentMethodNonce: str = Field(..., min_length=1)
    submitForSettlement: bool = False


class CloneTransactionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    submitForSettlement: bool = False


class CreatePaymentMethodRequest(BaseModel):
    customerId: str = Field(..., min_length=1)
    paymentMethodNonce: str = Field(..., min_length=1)
    makeDefault: bool = False


class CreateSubscriptionRequest(BaseModel):
    planId: str = Field(..., min_length=1)
    paymentMethodToken: str = Field(..., min_length=1)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)  # overrides plan price


# -------------------------
# Vendor resources
# -------------------------
class PaymentMethod(BaseModel):
    model_config = ConfigDict(extra="allow")

    token: str
    customerId: Optional[str] = None
    default: bool = False
    cardType: Optional[str] = None
    last4: Optional[str] = None
    expirationDate: Optional[str] = None
    imageUrl: Optional[str] = None


class Customer(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    paymentMethods: List[PaymentMethod] = []


class Transaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    amount: str                               # always "X.XX"
    status: str
    type: Optional[str] = None
    currencyIsoCode: Optional[str] = None
    customerId: Optional[str] = None
    paymentMethodToken: Optional[str] = None


class Plan(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    price: Optional[str] = None
    billingFrequency: Optional[int] = None    # months
    currencyIsoCode: Optional[str] = None


class Subscription(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    status: str                               # Active | Canceled | Expired | Past Due | Pending
    planId: Optional[str] = None
    paymentMethodToken: Optional[str] = None
    price: Optional[str] = None
    nextBillingDate: Optional[str] = None     # ISO date or None


# -------------------------
# Results
# -------------------------
class ErrorDetail(BaseModel):
    type: str
    message: str
    errors: List[Dict[str, Any]] = []


class ClientTokenResponse(BaseModel):
    success: bool = True
    clientToken: str


class TransactionResponse(BaseModel):
    success: bool = True
    transaction: Transaction


class CustomerResponse(BaseModel):
    success: bool = True
    customer: Optional[Customer] = None
    error: Optional[ErrorDetail] = None       # populated by bulk creation on per-element failure


class DeleteResponse(BaseModel):
    success: bool = True
    id: str
    deleted: bool                             # False when the customer did not exist


class PaymentMethodResponse(BaseModel):
    success: bool = True
    paymentMethod: PaymentMethod
    creditCard: Optional[PaymentMethod] = None  # same object when the instrument is a card


class PlanListResponse(BaseModel):
    success: bool = True
    plans: List[Plan] = []


class SubscriptionResponse(BaseModel):
    success: bool = True
    subscription: Subscription
