# btwrap/core/settings.py
from __future__ import annotations
from typing import List, Literal
from pydantic_settings import BaseSettings
from pydantic import field_validator, ConfigDict


class Settings(BaseSettings):
    # --- App ---
    APP_NAME: str = "Braintree Gateway Client"
    ENV: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # --- Payments ---
    PAYMENTS_BACKEND: Literal["fake", "braintree"] = "fake"
    BRAINTREE_ENVIRONMENT: Literal["sandbox", "production", "development", "qa"] = "sandbox"
    BRAINTREE_MERCHANT_ID: str = ""     # required if PAYMENTS_BACKEND=braintree
    BRAINTREE_PUBLIC_KEY: str = ""      # required if PAYMENTS_BACKEND=braintree
    BRAINTREE_PRIVATE_KEY: str = ""     # required if PAYMENTS_BACKEND=braintree

    # --- Calls ---
    REQUEST_TIMEOUT_SECONDS: float = 8.0

    # --- Fake backend ---
    FAKE_PLAN_IDS: str = "monthly,annual"  # comma-separated

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def DEV_MODE(self) -> bool:
        return self.ENV == "development"

    @property
    def fake_plan_ids(self) -> List[str]:
        return [p for p in self.FAKE_PLAN_IDS.split(",") if p]

    @field_validator("FAKE_PLAN_IDS")
    @classmethod
    def _norm_csv(cls, v: str) -> str:
        return ",".join([piece.strip() for piece in v.split(",")]) if v else v

    @field_validator("REQUEST_TIMEOUT_SECONDS")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        return v

    def validate_payments(self) -> None:
        if self.PAYMENTS_BACKEND == "braintree":
            if not (self.BRAINTREE_MERCHANT_ID and self.BRAINTREE_PUBLIC_KEY and self.BRAINTREE_PRIVATE_KEY):
                raise ValueError(
                    "BRAINTREE_MERCHANT_ID, BRAINTREE_PUBLIC_KEY and BRAINTREE_PRIVATE_KEY "
                    "are required when PAYMENTS_BACKEND=braintree"
                )


settings = Settings()
# Post init checks that are cross-field aware
settings.validate_payments()
