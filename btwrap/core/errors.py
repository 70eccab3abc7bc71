# btwrap/core/errors.py
from __future__ import annotations
from typing import Any, Dict, List, Optional


class GatewayError(Exception):
    """
    Base for every failure surfaced by the gateway client.

    `type` is a stable discriminator callers can branch on
    (e.g. `err.type == "notFoundError"`); `errors` carries the vendor's
    per-field validation errors when there are any.
    """

    type: str = "gatewayError"

    def __init__(self, message: str, *, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.errors: List[Dict[str, Any]] = list(errors or [])

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message, "errors": list(self.errors)}


class NotFoundError(GatewayError):
    type = "notFoundError"


class ValidationError(GatewayError):
    type = "validationError"


class DuplicateError(GatewayError):
    type = "duplicateError"


class NetworkError(GatewayError):
    type = "networkError"


class GatewayTimeoutError(NetworkError):
    type = "timeoutError"


class VendorError(GatewayError):
    type = "vendorError"
