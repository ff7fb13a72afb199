"""Candidate sources and credential providers for the daily queue."""

from .base import CandidateSource, CredentialProvider, StaticCredentials, Track
from .mock import MockSource

__all__ = ["CandidateSource", "CredentialProvider", "StaticCredentials", "Track", "MockSource"]
