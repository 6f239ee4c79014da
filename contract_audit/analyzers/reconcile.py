"""
Endpoint/call site reconciliation for contract_audit.

Matches every outbound call against the declared routes by their shared
``METHOD /normalized/path`` key and reports drift: calls with no route,
routes nobody calls, and parameter or body mismatches on matched pairs.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contract_audit.models import Issue, IssueType, SourceRef, severity_for
from contract_audit.normalize import (
    PARAM_TOKEN,
    iter_interpolations,
    raw_segments,
    segment_param_name,
)

if TYPE_CHECKING:
    from contract_audit.config import PolicyConfig
    from contract_audit.models import CallSite, Endpoint

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Issues plus the matched (endpoint, call site) pairs."""

    issues: list[Issue] = field(default_factory=list)
    matches: list[tuple[Endpoint, CallSite]] = field(default_factory=list)
    # key -> every endpoint declared under it, in observation order
    declarations: dict[str, list[Endpoint]] = field(default_factory=dict)

    @property
    def primary_endpoints(self) -> list[Endpoint]:
        return [endpoints[-1] for endpoints in self.declarations.values()]


def _supplied_positions(call: CallSite) -> dict[int, str | None]:
    """
    Raw call URL segments that carry a concrete value, by position.

    Interpolations map to their parameter name; literal values map to
    None (the position is filled, but by no named parameter).
    """
    positions = {}
    for i, segment in enumerate(raw_segments(call.url_raw)):
        if iter_interpolations(segment) or segment.startswith(":"):
            positions[i] = segment_param_name(segment)
        else:
            positions[i] = None
    return positions


def _endpoint_param_positions(endpoint: Endpoint) -> dict[str, int]:
    positions = {}
    for i, segment in enumerate(raw_segments(endpoint.raw_path)):
        name = segment_param_name(segment)
        if name and name not in positions:
            positions[name] = i
    return positions


class ReconciliationEngine:
    """
    Match call sites to endpoints and classify the differences.

    The engine owns the only mutation of ``Endpoint.used``.
    """

    def __init__(self, policy: PolicyConfig | None = None) -> None:
        self.severity_map = policy.severity_map if policy else {}

    def _issue(self, issue_type: IssueType, message: str, **kwargs) -> Issue:
        return Issue(
            type=issue_type,
            severity=severity_for(issue_type, self.severity_map),
            message=message,
            **kwargs,
        )

    def index(self, endpoints: list[Endpoint]) -> dict[str, list[Endpoint]]:
        """
        Multimap of key -> endpoints.

        The last declaration under a key is the one calls match against;
        earlier ones are kept for duplicate reporting.
        """
        declarations: dict[str, list[Endpoint]] = defaultdict(list)
        for endpoint in endpoints:
            declarations[endpoint.key].append(endpoint)
        return dict(declarations)

    def reconcile(self, endpoints: list[Endpoint], call_sites: list[CallSite]) -> ReconciliationResult:
        """
        Run the reconciliation pass.

        Args:
            endpoints: Every extracted endpoint, in observation order.
            call_sites: Every extracted call site.

        Returns:
            ReconciliationResult with issues in a stable order: duplicate
            declarations, per-call findings, then unused endpoints.
        """
        result = ReconciliationResult(declarations=self.index(endpoints))

        for key, declared in result.declarations.items():
            primary = declared[-1]
            for shadowed in declared[:-1]:
                result.issues.append(self._issue(
                    IssueType.DUPLICATE_ENDPOINT,
                    f"Endpoint {key} is declared more than once; {primary.file}:{primary.line} takes precedence",
                    source_refs=(SourceRef(shadowed.file, shadowed.line), SourceRef(primary.file, primary.line)),
                    endpoint=key,
                    suggestions=("Remove or rename the duplicate route declaration",),
                    details={"shadowed_by": f"{primary.file}:{primary.line}"},
                ))

        for call in call_sites:
            declared = result.declarations.get(call.key)
            if not declared:
                result.issues.append(self._missing_endpoint(call))
                continue
            endpoint = declared[-1]
            endpoint.used = True
            result.matches.append((endpoint, call))
            result.issues.extend(self.check_pair(endpoint, call))

        for endpoint in result.primary_endpoints:
            if not endpoint.used:
                result.issues.append(self._unused_endpoint(endpoint))

        logger.debug(
            "Reconciled %d call sites against %d endpoint keys: %d matched",
            len(call_sites),
            len(result.declarations),
            len(result.matches),
        )
        return result

    def _missing_endpoint(self, call: CallSite) -> Issue:
        return self._issue(
            IssueType.MISSING_BACKEND_ENDPOINT,
            f"No backend endpoint for {call.key} (called as {call.method} {call.url_raw})",
            source_refs=(SourceRef(call.file, call.line),),
            endpoint=call.key,
            suggestions=(
                f"Implement {call.method} {call.url} in the backend",
                "Check the URL and HTTP method of the call",
                "Check the route's mount prefix",
            ),
            details={"call_shape": call.shape.value, "url_raw": call.url_raw},
        )

    def _unused_endpoint(self, endpoint: Endpoint) -> Issue:
        return self._issue(
            IssueType.UNUSED_ENDPOINT,
            f"Endpoint {endpoint.key} is not called by the frontend",
            source_refs=(SourceRef(endpoint.file, endpoint.line),),
            endpoint=endpoint.key,
            suggestions=(
                "Remove the endpoint if it is obsolete",
                "Document it if other clients consume it",
            ),
            details={
                "controller": endpoint.controller,
                "base_path_strategy": endpoint.base_path_strategy,
            },
        )

    def check_pair(self, endpoint: Endpoint, call: CallSite) -> list[Issue]:
        """Field-level checks for one matched pair."""
        issues = []
        refs = (SourceRef(call.file, call.line), SourceRef(endpoint.file, endpoint.line))

        supplied = _supplied_positions(call)
        endpoint_positions = _endpoint_param_positions(endpoint)
        for name in endpoint.path_params:
            if name in call.url_params or PARAM_TOKEN in call.url or f":{name}" in call.url_raw:
                continue
            issues.append(self._issue(
                IssueType.MISSING_URL_PARAM,
                f"Call to {endpoint.key} does not supply path parameter '{name}'",
                source_refs=refs,
                endpoint=endpoint.key,
                suggestions=(f"Pass '{name}' in the URL",),
                details={"param": name},
            ))

        declared = set(endpoint.path_params)
        for name in call.url_params:
            if name in declared:
                continue
            # A differently named value in a declared parameter slot is not extra
            position = next((i for i, n in supplied.items() if n == name), None)
            if position is not None and position in endpoint_positions.values():
                continue
            issues.append(self._issue(
                IssueType.EXTRA_URL_PARAM,
                f"Call to {endpoint.key} passes path parameter '{name}' the route does not declare",
                source_refs=refs,
                endpoint=endpoint.key,
                details={"param": name},
            ))

        if call.body:
            for name, field_info in endpoint.body_schema.items():
                if field_info.get("required") and name not in call.body:
                    issues.append(self._issue(
                        IssueType.MISSING_BODY_FIELD,
                        f"Call to {endpoint.key} omits required body field '{name}'",
                        source_refs=refs,
                        endpoint=endpoint.key,
                        suggestions=(f"Add '{name}' to the request body",),
                        details={"field": name},
                    ))

        if endpoint.body_schema:
            for name in call.body:
                if name not in endpoint.body_schema:
                    issues.append(self._issue(
                        IssueType.EXTRA_BODY_FIELD,
                        f"Call to {endpoint.key} sends body field '{name}' the handler does not read",
                        source_refs=refs,
                        endpoint=endpoint.key,
                        details={"field": name},
                    ))

        for name in endpoint.query_params:
            if name not in call.query_params:
                issues.append(self._issue(
                    IssueType.MISSING_QUERY_PARAM,
                    f"Call to {endpoint.key} does not pass query parameter '{name}'",
                    source_refs=refs,
                    endpoint=endpoint.key,
                    details={"param": name},
                ))
        return issues
