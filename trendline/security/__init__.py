"""Request authentication for the inbound event surface."""

from .signature import SignatureVerifier

__all__ = ["SignatureVerifier"]
