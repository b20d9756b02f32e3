"""Mathematical proof package."""

from settlement_engine.proof.generator import ProofGenerator, compute_checksum

__all__ = ["ProofGenerator", "compute_checksum"]
