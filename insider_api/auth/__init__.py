"""Bearer authentication and unified error payloads."""

from insider_api.auth.errors import raise_token_expired
from insider_api.auth.errors import raise_token_invalid
from insider_api.auth.http import api_error
from insider_api.auth.http import error_payload
from insider_api.auth.http import handle_http_exception
from insider_api.auth.http import handle_request_validation_error

__all__ = [
    "api_error",
    "error_payload",
    "handle_http_exception",
    "handle_request_validation_error",
    "raise_token_expired",
    "raise_token_invalid",
]
