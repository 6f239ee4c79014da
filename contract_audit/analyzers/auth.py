"""
Security policy checks for contract_audit.

Classifies endpoints as sensitive from their ``METHOD /path`` key and
reports sensitive routes without auth middleware, plus matched calls that
reach an authenticated route without sending credentials.

Config-driven: explicit ``policy.require_auth_patterns`` are checked before
the built-in keyword list, and ``policy.public_endpoints`` extends the
built-in exemption list.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from contract_audit.config import PolicyConfig
from contract_audit.models import Issue, IssueType, SourceRef, severity_for

if TYPE_CHECKING:
    from contract_audit.models import CallSite, Endpoint

logger = logging.getLogger(__name__)


SENSITIVE_KEYWORDS = [
    "admin",
    "delete",
    "remove",
    "destroy",
    "create",
    "add",
    "update",
    "edit",
    "modify",
    "password",
    "auth",
    "login",
    "register",
    "user",
    "profile",
    "settings",
    "config",
    "upload",
    "file",
]

# Checked against the endpoint key ("METHOD /path")
EXEMPT_PATTERNS = [
    r"/health$",
    r"/status$",
    r"/version$",
    r"/ping$",
    r"/public/",
    r"/static/",
    r"/assets/",
    r"^GET /$",
    r"^GET .*\.(css|js|png|jpg|gif|ico)$",
    r"/auth/login$",
    r"/auth/register$",
    r"/auth/forgot-password$",
    r"/auth/reset-password$",
]

# (pattern, reason); first match wins
SENSITIVITY_REASONS = [
    (r"delete|remove|destroy", "Deletion operation"),
    (r"create|add|post", "Creation operation"),
    (r"update|edit|modify|put|patch", "Modification operation"),
    (r"admin", "Administrative operation"),
    (r"password|auth", "Authentication operation"),
    (r"user|profile", "Access to user data"),
    (r"upload|file", "File handling"),
]

AUTH_MIDDLEWARE_HINTS = ["auth", "jwt", "verify", "protect", "authenticate", "authorize", "guard", "secure", "token"]


class SecurityPolicyEngine:
    """
    Evaluate the security policy over endpoints and matched pairs.

    Patterns are compiled once per engine; invalid user patterns are
    logged and dropped by PolicyConfig.
    """

    def __init__(self, policy: PolicyConfig | None = None) -> None:
        """
        Initialize with a policy.

        Args:
            policy: Run policy; defaults to the built-in policy.
        """
        self.policy = policy or PolicyConfig()
        self.keyword_patterns = [re.compile(re.escape(k), re.IGNORECASE) for k in SENSITIVE_KEYWORDS]
        self.exempt_patterns = [re.compile(p, re.IGNORECASE) for p in EXEMPT_PATTERNS]
        self.reason_patterns = [(re.compile(p, re.IGNORECASE), reason) for p, reason in SENSITIVITY_REASONS]

    def _issue(self, issue_type: IssueType, message: str, **kwargs) -> Issue:
        return Issue(
            type=issue_type,
            severity=severity_for(issue_type, self.policy.severity_map),
            message=message,
            **kwargs,
        )

    # Classification

    def is_public(self, endpoint: Endpoint) -> bool:
        """
        True if the endpoint is listed in ``policy.public_endpoints``.

        Entries are either ``METHOD /path`` or a bare ``/path``; a trailing
        ``*`` turns an entry into a prefix match.
        """
        for entry in self.policy.public_endpoints:
            entry = entry.strip()
            if " " in entry:
                method, _, path = entry.partition(" ")
                entry = f"{method.upper()} {path.strip()}"
                candidates = [endpoint.key]
            else:
                candidates = [endpoint.path, endpoint.raw_path]
            if entry.endswith("*"):
                if any(c.startswith(entry[:-1]) for c in candidates):
                    return True
            elif entry in candidates:
                return True
        return False

    def is_exempt(self, endpoint: Endpoint) -> bool:
        """Health checks, static assets, login flows and public endpoints."""
        key = endpoint.key
        if any(p.search(key) for p in self.exempt_patterns):
            return True
        return self.is_public(endpoint)

    def is_sensitive(self, endpoint: Endpoint) -> bool:
        """
        Configured patterns first, then the built-in keywords.

        Exempt endpoints are never sensitive.
        """
        if self.is_exempt(endpoint):
            return False
        key = endpoint.key
        if any(p.search(key) for p in self.policy.require_auth_patterns):
            return True
        return any(p.search(key) for p in self.keyword_patterns)

    def sensitivity_reason(self, endpoint: Endpoint) -> str:
        key = endpoint.key
        for pattern, reason in self.reason_patterns:
            if pattern.search(key):
                return reason
        return "Potentially sensitive operation"

    # Checks

    def check_endpoints(self, endpoints: list[Endpoint]) -> list[Issue]:
        """Per-endpoint sensitivity checks."""
        issues = []
        for endpoint in endpoints:
            ref = (SourceRef(endpoint.file, endpoint.line),)
            exempt = self.is_exempt(endpoint)

            if not endpoint.requires_auth and self.is_sensitive(endpoint):
                reason = self.sensitivity_reason(endpoint)
                issues.append(self._issue(
                    IssueType.SENSITIVE_ENDPOINT_NO_AUTH,
                    f"Sensitive endpoint {endpoint.key} has no authentication middleware",
                    source_refs=ref,
                    endpoint=endpoint.key,
                    suggestions=(
                        "Add authentication middleware (e.g. requireAuth, verifyToken)",
                        "Add authorization checks for the operation",
                        "List the endpoint under policy.public_endpoints if it is intentionally public",
                    ),
                    details={"reason": reason, "middleware": list(endpoint.middleware)},
                ))

            if (
                not endpoint.requires_auth
                and not exempt
                and endpoint.method.upper() in self.policy.sensitive_methods
            ):
                issues.append(self._issue(
                    IssueType.SENSITIVE_METHOD_NO_AUTH,
                    f"{endpoint.method} endpoint {endpoint.path} modifies state without authentication",
                    source_refs=ref,
                    endpoint=endpoint.key,
                    suggestions=(
                        f"Protect {endpoint.method} routes with authentication middleware",
                    ),
                    details={"method": endpoint.method},
                ))

            if endpoint.requires_auth and self.is_public(endpoint):
                issues.append(self._issue(
                    IssueType.PUBLIC_ENDPOINT_HAS_AUTH,
                    f"Endpoint {endpoint.key} is configured as public but requires authentication",
                    source_refs=ref,
                    endpoint=endpoint.key,
                    suggestions=(
                        "Remove the auth middleware or drop the endpoint from policy.public_endpoints",
                    ),
                    details={"middleware": list(endpoint.middleware)},
                ))
        return issues

    def check_pairs(self, matches: list[tuple[Endpoint, CallSite]]) -> list[Issue]:
        """Matched calls to authenticated endpoints must send credentials."""
        issues = []
        for endpoint, call in matches:
            if not endpoint.requires_auth or call.has_auth_header:
                continue
            auth_middleware = [
                name for name in endpoint.middleware
                if any(hint in name.lower() for hint in AUTH_MIDDLEWARE_HINTS)
            ]
            issues.append(self._issue(
                IssueType.MISSING_AUTH_HEADER,
                f"Call to {endpoint.key} sends no authentication header but the endpoint requires auth",
                source_refs=(SourceRef(call.file, call.line), SourceRef(endpoint.file, endpoint.line)),
                endpoint=endpoint.key,
                suggestions=(
                    "Send an Authorization header with the request",
                    "Configure an HTTP client interceptor that adds credentials",
                ),
                details={"auth_middleware": auth_middleware, "call_shape": call.shape.value},
            ))
        return issues

    def evaluate(
        self,
        endpoints: list[Endpoint],
        matches: list[tuple[Endpoint, CallSite]],
    ) -> list[Issue]:
        """
        Run every security check.

        Args:
            endpoints: Endpoints to classify (one per key).
            matches: (endpoint, call site) pairs from reconciliation.

        Returns:
            Endpoint findings followed by pair findings.
        """
        issues = self.check_endpoints(endpoints)
        issues.extend(self.check_pairs(matches))
        logger.debug("Security policy produced %d issues", len(issues))
        return issues
