"""
Contract Audit - statically reconcile a backend API against its clients.

Extracts route declarations from a backend tree, outbound HTTP calls from a
frontend tree and UI components from a design system, then reports drift
between them (missing/unused endpoints, auth gaps, duplicated components).
"""

__version__ = "1.0.0"

from contract_audit.config import DEFAULT_CONFIG, load_config
from contract_audit.models import AuditResult, Issue, IssueType, Severity
from contract_audit.normalize import normalize
from contract_audit.scanner import AuditConfigError, ContractAuditor

__all__ = [
    "AuditConfigError",
    "AuditResult",
    "ContractAuditor",
    "DEFAULT_CONFIG",
    "Issue",
    "IssueType",
    "Severity",
    "load_config",
    "normalize",
    "__version__",
]
