"""Qualifind Application -- identity core wiring."""

from qualifind.application.identity_core import IdentityCore, identity_core

__all__ = ["IdentityCore", "identity_core"]
