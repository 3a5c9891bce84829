"""Operator verification commands."""

from .gate import ActivationStatus, VerificationGate, VerificationOutcome

__all__ = ["ActivationStatus", "VerificationGate", "VerificationOutcome"]
