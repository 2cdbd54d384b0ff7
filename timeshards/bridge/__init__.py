"""Bridges to the outside world: proof authorities and receipt signing."""

from timeshards.bridge.local_authority import LocalProofAuthority
from timeshards.bridge.proof_authority import HttpProofAuthority, ProofAuthority

__all__ = ["ProofAuthority", "HttpProofAuthority", "LocalProofAuthority"]
