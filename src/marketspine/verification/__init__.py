"""Registry verification collaborators."""

from marketspine.verification.anaf import AnafVerifier
from marketspine.verification.protocol import VerificationResult, VerificationStatus, Verifier
from marketspine.verification.static import StaticVerifier

__all__ = ["AnafVerifier", "StaticVerifier", "VerificationResult", "VerificationStatus", "Verifier"]
