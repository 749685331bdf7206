"""
Reconciliation between on-chain vehicle tokens and off-chain profiles:
mint confirmation (write path) and ownership audits (read path).
"""

from backend_carstarz.reconciliation.auditor import OwnershipAuditor
from backend_carstarz.reconciliation.mint import MintReconciler, normalize_vin

__all__ = ["MintReconciler", "OwnershipAuditor", "normalize_vin"]
