"""
Run summary for contract_audit.

Aggregates issue counts, endpoint coverage and design system adoption
into the ``summary`` block of an AuditResult.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from contract_audit.models import Scope, Severity

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.models import AuditResult, Endpoint


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


def build_summary(
    result: AuditResult,
    primary_endpoints: list[Endpoint] | None = None,
    files_scanned: dict[str, int] | None = None,
    cache_hits: int = 0,
) -> dict[str, Any]:
    """
    Build the summary block for a finished run.

    Args:
        result: The run result with issues and records filled in.
        primary_endpoints: One endpoint per key (defaults to all endpoints).
        files_scanned: Role name -> number of files considered.
        cache_hits: Number of files served from the analysis cache.

    Returns:
        Summary dict (JSON-serializable).
    """
    endpoints = primary_endpoints if primary_endpoints is not None else result.endpoints
    used_endpoints = sum(1 for e in endpoints if e.used)
    ds_components = [c for c in result.components if c.scope == Scope.DESIGN_SYSTEM]
    used_ds = sum(1 for c in ds_components if c.used)

    by_severity = {s.value: 0 for s in Severity}
    by_type: Counter[str] = Counter()
    for issue in result.issues:
        by_severity[issue.severity.value] += 1
        by_type[issue.type.value] += 1

    diagnostics_by_kind: Counter[str] = Counter(d.kind for d in result.diagnostics)

    return {
        "total_issues": len(result.issues),
        "issues_by_severity": by_severity,
        "issues_by_type": dict(sorted(by_type.items())),
        "endpoints": {
            "total": len(endpoints),
            "declarations": len(result.endpoints),
            "used": used_endpoints,
            "unused": len(endpoints) - used_endpoints,
            "coverage_percent": _percent(used_endpoints, len(endpoints)),
            "requiring_auth": sum(1 for e in endpoints if e.requires_auth),
        },
        "call_sites": {
            "total": len(result.call_sites),
            "with_auth_header": sum(1 for c in result.call_sites if c.has_auth_header),
            "by_shape": dict(sorted(Counter(c.shape.value for c in result.call_sites).items())),
        },
        "components": {
            "design_system": len(ds_components),
            "design_system_used": used_ds,
            "adoption_percent": _percent(used_ds, len(ds_components)),
            "frontend": sum(1 for c in result.components if c.scope == Scope.FRONTEND),
        },
        "files_scanned": dict(files_scanned or {}),
        "cache_hits": cache_hits,
        "diagnostics": {
            "total": len(result.diagnostics),
            "by_kind": dict(sorted(diagnostics_by_kind.items())),
        },
        "has_critical": by_severity[Severity.CRITICAL.value] > 0,
    }
