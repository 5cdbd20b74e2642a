# tests/test_exceptions.py
import pytest
from polytrade.exceptions import (
    TRANSIENT_ERRORS,
    AuthError,
    ConfigError,
    CredentialDerivationFailed,
    EncodingFailed,
    InvalidKeyFormat,
    MissingExpiration,
    MissingSafeAddress,
    NetworkError,
    NoSigningKey,
    PolytradeError,
    PriceOutOfRange,
    RateLimitError,
    SigningFailed,
    TransactionFailed,
    UpstreamAPIError,
    ValidationError,
)

ALL_ERRORS = [
    ConfigError,
    ValidationError,
    NoSigningKey,
    InvalidKeyFormat,
    MissingSafeAddress,
    PriceOutOfRange,
    MissingExpiration,
    SigningFailed,
    CredentialDerivationFailed,
    EncodingFailed,
    AuthError,
    RateLimitError,
    UpstreamAPIError,
    NetworkError,
    TransactionFailed,
]


def test_exception_hierarchy():
    """Test all exceptions inherit from PolytradeError."""
    for cls in ALL_ERRORS:
        assert issubclass(cls, PolytradeError)
    assert issubclass(NoSigningKey, ConfigError)
    assert issubclass(MissingSafeAddress, ConfigError)
    assert issubclass(InvalidKeyFormat, ValidationError)
    assert issubclass(PriceOutOfRange, ValidationError)
    assert issubclass(MissingExpiration, ValidationError)
    assert issubclass(EncodingFailed, ValidationError)


def test_kind_matches_class_name():
    """Test every error reports its taxonomy name."""
    for cls in ALL_ERRORS:
        assert cls("boom").kind == cls.__name__


def test_exception_messages():
    """Test exceptions preserve messages."""
    assert str(ConfigError("test")) == "test"
    assert str(AuthError("unauthorized")) == "unauthorized"


def test_exception_details_in_str():
    err = PriceOutOfRange("bad price", {"price": "1.2"})
    assert str(err) == "bad price (price=1.2)"
    assert err.details == {"price": "1.2"}


def test_to_dict():
    """Test machine-readable form."""
    err = EncodingFailed("mismatch", {"amounts": 3, "outcomes": 2})
    assert err.to_dict() == {
        "error": "EncodingFailed",
        "message": "mismatch",
        "details": {"amounts": "3", "outcomes": "2"},
    }


def test_only_transport_errors_are_transient():
    assert set(TRANSIENT_ERRORS) == {NetworkError, UpstreamAPIError, RateLimitError}
    for cls in (SigningFailed, PriceOutOfRange, EncodingFailed, InvalidKeyFormat):
        assert not issubclass(cls, TRANSIENT_ERRORS)


def test_raise_and_catch_as_base():
    with pytest.raises(PolytradeError):
        raise MissingSafeAddress("no safe")
