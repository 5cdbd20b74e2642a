# polytrade/exceptions.py
"""
Polytrade exceptions.

Every failure raised by the signing core carries a stable ``kind`` (the
taxonomy name) plus a human-readable message and optional structured
details, so the CLI can render it either as text or as JSON.

Classes:
    PolytradeError: Base exception for all polytrade errors
    NoSigningKey: No private key found in flag, environment or config file
    InvalidKeyFormat: Candidate key is not a valid secp256k1 private key
    MissingSafeAddress: GnosisSafe signing selected without a safe address
    PriceOutOfRange: Price outside (0, 1) after tick rounding
    MissingExpiration: GTD order without an expiration
    SigningFailed: The underlying ECDSA operation failed
    CredentialDerivationFailed: API key creation/derivation failed
    EncodingFailed: Malformed on-chain call arguments

Example:
    >>> try:
    ...     builder.build(request)
    ... except PriceOutOfRange as e:
    ...     print(e.to_dict())
"""


class PolytradeError(Exception):
    """Base exception for all polytrade errors."""

    kind = "PolytradeError"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> dict:
        """Machine-readable form used by JSON output."""
        return {
            "error": self.kind,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


class ConfigError(PolytradeError):
    """Missing or invalid configuration."""

    kind = "ConfigError"


class ValidationError(PolytradeError):
    """Input validation failed."""

    kind = "ValidationError"


class NoSigningKey(ConfigError):
    kind = "NoSigningKey"


class InvalidKeyFormat(ValidationError):
    kind = "InvalidKeyFormat"


class MissingSafeAddress(ConfigError):
    kind = "MissingSafeAddress"


class PriceOutOfRange(ValidationError):
    kind = "PriceOutOfRange"


class MissingExpiration(ValidationError):
    kind = "MissingExpiration"


class SigningFailed(PolytradeError):
    """ECDSA signing failed for an already validated key."""

    kind = "SigningFailed"


class CredentialDerivationFailed(PolytradeError):
    kind = "CredentialDerivationFailed"


class EncodingFailed(ValidationError):
    """On-chain call arguments could not be ABI-encoded."""

    kind = "EncodingFailed"


class AuthError(PolytradeError):
    """Authentication or authorization failure."""

    kind = "AuthError"


class RateLimitError(PolytradeError):
    """HTTP 429 - rate limit exceeded."""

    kind = "RateLimitError"


class UpstreamAPIError(PolytradeError):
    """5xx errors from the exchange or RPC node."""

    kind = "UpstreamAPIError"


class NetworkError(PolytradeError):
    """Network connectivity issues."""

    kind = "NetworkError"


class TransactionFailed(PolytradeError):
    """The node rejected or reverted a transaction."""

    kind = "TransactionFailed"


# Errors a transport may retry; everything else is terminal for the command.
TRANSIENT_ERRORS = (NetworkError, UpstreamAPIError, RateLimitError)
