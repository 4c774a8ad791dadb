"""SEVIS gating of change item approvals."""

from .gate import SevisGate

__all__ = ["SevisGate"]
