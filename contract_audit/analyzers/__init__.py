"""
Analyzers for contract_audit.

These run single-threaded over the complete record sets once extraction
has finished: reconciliation, security policy, component similarity and
the run summary.
"""

from contract_audit.analyzers.auth import SecurityPolicyEngine
from contract_audit.analyzers.coverage import build_summary
from contract_audit.analyzers.reconcile import ReconciliationEngine, ReconciliationResult
from contract_audit.analyzers.similarity import SimilarityMatcher, index_design_system_imports

__all__ = [
    "ReconciliationEngine",
    "ReconciliationResult",
    "SecurityPolicyEngine",
    "SimilarityMatcher",
    "build_summary",
    "index_design_system_imports",
]
