import base64
import json

import pytest

from btwrap.core.errors import DuplicateError, NotFoundError, ValidationError
from btwrap.payments.fake_provider import FakeBraintreeProvider
from btwrap.payments.types import SUBSCRIPTION_ALREADY_CANCELED


@pytest.fixture
def fake():
    return FakeBraintreeProvider(plan_ids=["monthly", "pro-annual"])


def test_plans_are_seeded_in_order(fake):
    plans = fake.list_plans()
    assert [p["id"] for p in plans] == ["monthly", "pro-annual"]
    assert plans[0]["billingFrequency"] == 1
    assert plans[1]["billingFrequency"] == 12
    assert plans[1]["name"] == "Pro Annual"


def test_list_plans_returns_copies(fake):
    fake.list_plans()[0]["id"] = "mutated"
    assert fake.list_plans()[0]["id"] == "monthly"


def test_client_token_is_base64_json(fake):
    token = fake.generate_client_token()
    payload = json.loads(base64.b64decode(token))
    assert payload["version"] == 2
    assert payload["authorizationFingerprint"]


def test_customer_created_with_nonce_gets_default_payment_method(fake):
    customer = fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-valid-nonce"})
    [pm] = customer["paymentMethods"]
    assert pm["default"] is True
    assert pm["cardType"] == "Visa"
    assert pm["customerId"] == "c1"


def test_customer_without_id_gets_generated_one(fake):
    customer = fake.create_customer(params={"first_name": "Ann"})
    assert customer["id"].startswith("cus_test_")
    assert customer["firstName"] == "Ann"


def test_duplicate_customer_carries_vendor_code(fake):
    fake.create_customer(params={"id": "c1"})
    with pytest.raises(DuplicateError) as exc:
        fake.create_customer(params={"id": "c1"})
    assert exc.value.errors[0]["code"] == "91609"


def test_invalid_nonce_does_not_create_customer(fake):
    with pytest.raises(ValidationError):
        fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-consumed-nonce"})
    assert fake.customers == {}


def test_make_default_moves_the_default_flag(fake):
    fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-valid-nonce"})
    second = fake.create_payment_method(
        customer_id="c1", payment_method_nonce="fake-valid-mastercard-nonce", make_default=True
    )
    assert second["cardType"] == "MasterCard"
    methods = fake.find_customer("c1")["paymentMethods"]
    assert [pm["default"] for pm in methods] == [False, True]


def test_deleting_customer_drops_vault_and_cancels_subscriptions(fake):
    customer = fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-valid-nonce"})
    token = customer["paymentMethods"][0]["token"]
    sub = fake.create_subscription(plan_id="monthly", payment_method_token=token)

    fake.delete_customer("c1")

    with pytest.raises(NotFoundError):
        fake.find_payment_method(token)
    assert fake.find_subscription(sub["id"])["status"] == "Canceled"


def test_delete_of_missing_customer_raises_not_found(fake):
    with pytest.raises(NotFoundError):
        fake.delete_customer("ghost")


def test_clone_inherits_payment_context(fake):
    original = fake.create_transaction(amount="10.00", payment_method_nonce="fake-valid-nonce")
    original_record = fake.transactions[original["id"]]
    original_record["paymentMethodToken"] = "pm_x"

    clone = fake.clone_transaction(transaction_id=original["id"], amount="12.00")
    assert clone["paymentMethodToken"] == "pm_x"
    assert clone["amount"] == "12.00"
    assert clone["id"] != original["id"]


def test_subscription_price_defaults_to_plan_price(fake):
    customer = fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-valid-nonce"})
    token = customer["paymentMethods"][0]["token"]

    sub = fake.create_subscription(plan_id="pro-annual", payment_method_token=token)
    assert sub["price"] == "100.00"

    custom = fake.create_subscription(plan_id="monthly", payment_method_token=token, price="7.50")
    assert custom["price"] == "7.50"


def test_subscription_reports_every_invalid_field(fake):
    with pytest.raises(ValidationError) as exc:
        fake.create_subscription(plan_id="nope", payment_method_token="nope")
    assert {e["attribute"] for e in exc.value.errors} == {"plan_id", "payment_method_token"}


def test_second_cancel_is_rejected_like_the_vendor(fake):
    customer = fake.create_customer(params={"id": "c1", "payment_method_nonce": "fake-valid-nonce"})
    sub = fake.create_subscription(plan_id="monthly", payment_method_token=customer["paymentMethods"][0]["token"])

    canceled = fake.cancel_subscription(sub["id"])
    assert canceled["status"] == "Canceled"
    assert canceled["nextBillingDate"] is None

    with pytest.raises(ValidationError) as exc:
        fake.cancel_subscription(sub["id"])
    assert exc.value.errors[0]["code"] == SUBSCRIPTION_ALREADY_CANCELED
