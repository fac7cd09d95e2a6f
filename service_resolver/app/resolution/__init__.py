"""
Resolution orchestration and DID document construction.
"""

from .document import DIDDocument, ResolutionResult, VerificationMethod, build_resolution_result
from .orchestrator import ResolutionOrchestrator, ResolutionStage

__all__ = [
    "DIDDocument",
    "ResolutionResult",
    "VerificationMethod",
    "build_resolution_result",
    "ResolutionOrchestrator",
    "ResolutionStage",
]
