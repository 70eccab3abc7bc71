"""
Result and error translation of BraintreePaymentProvider, with the SDK
gateway replaced by a mock.
"""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from braintree.exceptions import (
    AuthenticationError,
    NotFoundError as BraintreeNotFoundError,
    ServiceUnavailableError,
    UnexpectedError,
)

from btwrap.core.errors import (
    DuplicateError,
    NetworkError,
    NotFoundError,
    ValidationError,
    VendorError,
)
from btwrap.payments.braintree_provider import BraintreePaymentProvider


# =============================================================================
# Test Fixtures
# =============================================================================


def _card(token="tok_1", customer_id="unique123"):
    return SimpleNamespace(
        token=token,
        customer_id=customer_id,
        default=True,
        card_type="Visa",
        last_4="1111",
        expiration_date="12/2030",
        image_url="https://assets.example/visa.png",
    )


def _customer(**overrides):
    fields = dict(
        id="unique123",
        first_name="chicken",
        last_name=None,
        email=None,
        company=None,
        phone=None,
        payment_methods=[_card()],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _success(**attrs):
    return SimpleNamespace(is_success=True, **attrs)


def _failure(*errors, message="Rejected"):
    deep = [SimpleNamespace(attribute=a, code=c, message=m) for a, c, m in errors]
    return SimpleNamespace(is_success=False, message=message, errors=SimpleNamespace(deep_errors=deep))


@pytest.fixture
def sdk():
    return MagicMock()


@pytest.fixture
def bt(sdk):
    return BraintreePaymentProvider(gateway=sdk)


# =============================================================================
# Construction
# =============================================================================


def test_builds_sdk_gateway_from_credentials():
    provider = BraintreePaymentProvider(
        merchant_id="m", public_key="pub", private_key="priv", environment="sandbox", timeout=8.0
    )
    assert provider.gateway.config.merchant_id == "m"
    assert provider.gateway.config.timeout == 8.0


def test_rejects_unknown_environment():
    with pytest.raises(ValueError):
        BraintreePaymentProvider(merchant_id="m", public_key="p", private_key="k", environment="moon")


# =============================================================================
# Serialization
# =============================================================================


def test_client_token_passes_customer_id(bt, sdk):
    sdk.client_token.generate.return_value = "tok"
    assert bt.generate_client_token(customer_id="c1") == "tok"
    sdk.client_token.generate.assert_called_once_with({"customer_id": "c1"})


def test_sale_renders_two_decimal_amount(bt, sdk):
    sdk.transaction.sale.return_value = _success(
        transaction=SimpleNamespace(
            id="t1",
            amount=Decimal("15"),
            status="authorized",
            type="sale",
            currency_iso_code="USD",
            customer_details=SimpleNamespace(id=None),
            credit_card_details=SimpleNamespace(token=None),
        )
    )
    txn = bt.create_transaction(amount="15.00", payment_method_nonce="fake-valid-nonce")

    assert txn["amount"] == "15.00"
    assert txn["status"] == "authorized"
    sdk.transaction.sale.assert_called_once_with({
        "amount": "15.00",
        "payment_method_nonce": "fake-valid-nonce",
        "options": {"submit_for_settlement": False},
    })


def test_customer_is_flattened_to_camel_case(bt, sdk):
    sdk.customer.find.return_value = _customer()
    customer = bt.find_customer("unique123")

    assert customer["firstName"] == "chicken"
    assert customer["paymentMethods"][0] == {
        "token": "tok_1",
        "customerId": "unique123",
        "default": True,
        "cardType": "Visa",
        "last4": "1111",
        "expirationDate": "12/2030",
        "imageUrl": "https://assets.example/visa.png",
    }


def test_plans_keep_vendor_order(bt, sdk):
    sdk.plan.all.return_value = [
        SimpleNamespace(id="b", name="B", price=Decimal("5"), billing_frequency=1, currency_iso_code="USD"),
        SimpleNamespace(id="a", name="A", price=Decimal("50"), billing_frequency=12, currency_iso_code="USD"),
    ]
    plans = bt.list_plans()
    assert [p["id"] for p in plans] == ["b", "a"]
    assert plans[1]["price"] == "50.00"


def test_subscription_dates_are_iso(bt, sdk):
    sdk.subscription.cancel.return_value = _success(
        subscription=SimpleNamespace(
            id="s1",
            status="Canceled",
            plan_id="monthly",
            payment_method_token="tok_1",
            price=Decimal("10.00"),
            next_billing_date=date(2030, 1, 31),
        )
    )
    sub = bt.cancel_subscription("s1")
    assert sub["status"] == "Canceled"
    assert sub["nextBillingDate"] == "2030-01-31"


def test_payment_method_make_default_option(bt, sdk):
    sdk.payment_method.create.return_value = _success(payment_method=_card())
    bt.create_payment_method(customer_id="c1", payment_method_nonce="n", make_default=True)
    sdk.payment_method.create.assert_called_once_with({
        "customer_id": "c1",
        "payment_method_nonce": "n",
        "options": {"make_default": True},
    })


# =============================================================================
# Error translation
# =============================================================================


def test_sdk_not_found_becomes_not_found(bt, sdk):
    sdk.customer.find.side_effect = BraintreeNotFoundError()
    with pytest.raises(NotFoundError) as exc:
        bt.find_customer("ghost")
    assert exc.value.type == "notFoundError"
    assert "ghost" in exc.value.message


def test_id_in_use_becomes_duplicate(bt, sdk):
    sdk.customer.create.return_value = _failure(("id", "91609", "Customer ID has already been taken."))
    with pytest.raises(DuplicateError) as exc:
        bt.create_customer(params={"id": "unique123"})
    assert exc.value.errors == [
        {"attribute": "id", "code": "91609", "message": "Customer ID has already been taken."}
    ]


def test_unknown_customer_on_payment_method_becomes_not_found(bt, sdk):
    sdk.payment_method.create.return_value = _failure(("customer_id", "93105", "Customer ID is invalid."))
    with pytest.raises(NotFoundError):
        bt.create_payment_method(customer_id="ghost", payment_method_nonce="n")


def test_rejected_nonce_becomes_validation_error(bt, sdk):
    sdk.transaction.sale.return_value = _failure(
        ("payment_method_nonce", "91565", "Unknown or expired payment_method_nonce."),
        message="Unknown or expired payment_method_nonce.",
    )
    with pytest.raises(ValidationError) as exc:
        bt.create_transaction(amount="1.00", payment_method_nonce="stale")
    assert exc.value.message == "Unknown or expired payment_method_nonce."


def test_processor_decline_without_field_errors_is_validation_error(bt, sdk):
    sdk.transaction.sale.return_value = _failure(message="Do Not Honor")
    with pytest.raises(ValidationError) as exc:
        bt.create_transaction(amount="2000.00", payment_method_nonce="fake-valid-nonce")
    assert exc.value.errors == []


@pytest.mark.parametrize("error", [ServiceUnavailableError(), UnexpectedError("connection reset")])
def test_transport_failures_become_network_errors(bt, sdk, error):
    sdk.plan.all.side_effect = error
    with pytest.raises(NetworkError) as exc:
        bt.list_plans()
    assert exc.value.type == "networkError"


def test_bad_credentials_become_vendor_error(bt, sdk):
    sdk.subscription.find.side_effect = AuthenticationError()
    with pytest.raises(VendorError):
        bt.find_subscription("s1")


def test_unrecognized_exceptions_propagate_unchanged(bt, sdk):
    sdk.customer.update.side_effect = KeyError("Invalid keys: bogus")
    with pytest.raises(KeyError):
        bt.update_customer(customer_id="c1", params={"bogus": 1})
