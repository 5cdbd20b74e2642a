"""Typed-data signing, address derivation and request authentication."""
