"""
Activation — Project chosen mirrored files into the activation directory.
"""

from .ledger import ActivationLedger, ActiveProjection
from .projector import ActivationProjector, CleanupReport, RepairReport

__all__ = [
    "ActivationLedger",
    "ActivationProjector",
    "ActiveProjection",
    "CleanupReport",
    "RepairReport",
]
