"""
Request authentication headers for the exchange API.

L1 headers prove control of the signing key with a ClobAuth typed-data
signature; they are only used to create or derive API credentials.

L2 headers authenticate every private endpoint call with an HMAC-SHA256 of
``timestamp + METHOD + path + body`` keyed by the url-safe base64 API
secret. The timestamp is part of the signed content, so headers are built
fresh for each request and never reused.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any

from polytrade.auth import ApiCredentials
from polytrade.exceptions import AuthError
from polytrade.signing.typed_data import TypedDataSigner

POLY_ADDRESS = "POLY_ADDRESS"
POLY_SIGNATURE = "POLY_SIGNATURE"
POLY_TIMESTAMP = "POLY_TIMESTAMP"
POLY_NONCE = "POLY_NONCE"
POLY_API_KEY = "POLY_API_KEY"
POLY_PASSPHRASE = "POLY_PASSPHRASE"


def serialize_body(body: Any) -> str:
    """Canonical request body text; the exact string is signed and sent."""
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def build_hmac_signature(
    secret: str,
    timestamp: int,
    method: str,
    request_path: str,
    body: str = "",
) -> str:
    """url-safe base64 HMAC-SHA256 over the canonical request string."""
    try:
        key = base64.urlsafe_b64decode(secret)
    except (ValueError, TypeError) as e:
        raise AuthError("API secret is not valid base64") from e
    message = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8")


def l2_headers(
    creds: ApiCredentials,
    address: str,
    method: str,
    request_path: str,
    body: str = "",
    timestamp: int | None = None,
) -> dict[str, str]:
    """Headers for one authenticated request."""
    if timestamp is None:
        timestamp = int(time.time())
    signature = build_hmac_signature(
        creds.secret, timestamp, method, request_path, body
    )
    return {
        POLY_ADDRESS: address,
        POLY_SIGNATURE: signature,
        POLY_TIMESTAMP: str(timestamp),
        POLY_API_KEY: creds.api_key,
        POLY_PASSPHRASE: creds.passphrase,
    }


def l1_headers(
    signer: TypedDataSigner,
    chain_id: int,
    nonce: int = 0,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Headers for the credential create/derive endpoints."""
    if timestamp is None:
        timestamp = int(time.time())
    return {
        POLY_ADDRESS: signer.address,
        POLY_SIGNATURE: signer.sign_clob_auth(chain_id, timestamp, nonce),
        POLY_TIMESTAMP: str(timestamp),
        POLY_NONCE: str(nonce),
    }
