"""Core models package."""

from .principal import IdentityProfile, Principal, ProfileResult

__all__ = ["IdentityProfile", "Principal", "ProfileResult"]
