# btwrap/core/deps.py
from functools import lru_cache
from btwrap.core.logger import setup_logging
from btwrap.core.settings import settings, Settings
from btwrap.engine.gateway import GatewayClient
from btwrap.payments.braintree_provider import BraintreePaymentProvider
from btwrap.payments.fake_provider import FakeBraintreeProvider
from btwrap.payments.types import PaymentProvider


def build_provider(cfg: Settings) -> PaymentProvider:
    if cfg.PAYMENTS_BACKEND == "fake" or not cfg.BRAINTREE_MERCHANT_ID:
        return FakeBraintreeProvider(plan_ids=cfg.fake_plan_ids)
    return BraintreePaymentProvider(
        merchant_id=cfg.BRAINTREE_MERCHANT_ID,
        public_key=cfg.BRAINTREE_PUBLIC_KEY,
        private_key=cfg.BRAINTREE_PRIVATE_KEY,
        environment=cfg.BRAINTREE_ENVIRONMENT,
        timeout=cfg.REQUEST_TIMEOUT_SECONDS,
    )


def create_gateway(cfg: Settings) -> GatewayClient:
    cfg.validate_payments()
    return GatewayClient(build_provider(cfg), timeout=cfg.REQUEST_TIMEOUT_SECONDS)


@lru_cache(maxsize=1)
def _payments_singleton() -> PaymentProvider:
    return build_provider(settings)


def get_payment_provider() -> PaymentProvider:
    # One credential context per process; the provider is safe to share
    return _payments_singleton()


@lru_cache(maxsize=1)
def get_gateway() -> GatewayClient:
    setup_logging()
    return GatewayClient(get_payment_provider(), timeout=settings.REQUEST_TIMEOUT_SECONDS)
