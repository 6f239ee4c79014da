from contract_audit.analyzers.auth import SecurityPolicyEngine
from contract_audit.analyzers.reconcile import ReconciliationEngine
from contract_audit.config import DEFAULT_CONFIG, PolicyConfig
from contract_audit.models import CallShape, CallSite, Endpoint, IssueType, Severity
from contract_audit.normalize import normalize
from contract_audit.scanners.http_calls import CallSiteExtractor


def endpoint(method, raw_path, requires_auth=False, middleware=None):
    return Endpoint(
        method=method,
        raw_path=raw_path,
        path=normalize(raw_path),
        file="routes/api.js",
        line=3,
        middleware=middleware or [],
        requires_auth=requires_auth,
    )


def engine(**policy):
    return SecurityPolicyEngine(PolicyConfig.from_config({"policy": {**DEFAULT_CONFIG["policy"], **policy}}))


def found(issues):
    return {(i.type, i.severity) for i in issues}


def test_sensitive_delete_without_auth_is_critical():
    issues = engine().check_endpoints([endpoint("DELETE", "/api/users/:id")])

    assert (IssueType.SENSITIVE_ENDPOINT_NO_AUTH, Severity.CRITICAL) in found(issues)
    assert (IssueType.SENSITIVE_METHOD_NO_AUTH, Severity.HIGH) in found(issues)
    sensitive = [i for i in issues if i.type == IssueType.SENSITIVE_ENDPOINT_NO_AUTH][0]
    assert sensitive.details["reason"] == "Deletion operation"


def test_authenticated_endpoint_is_clean():
    issues = engine().check_endpoints([endpoint("DELETE", "/api/users/:id", True, ["requireAuth"])])
    assert issues == []


def test_exempt_endpoints():
    e = engine()
    for ep in [
        endpoint("POST", "/api/auth/login"),
        endpoint("GET", "/api/health"),
        endpoint("GET", "/"),
        endpoint("POST", "/public/upload"),
    ]:
        assert e.is_exempt(ep), ep.key
        assert e.check_endpoints([ep]) == []


def test_plain_read_is_not_sensitive():
    assert engine().check_endpoints([endpoint("GET", "/api/products")]) == []


def test_configured_patterns_and_public_endpoints():
    e = engine(require_auth_patterns=["reports"], public_endpoints=["POST /api/contact", "/api/catalog/*"])

    assert e.is_sensitive(endpoint("GET", "/api/reports"))
    assert e.check_endpoints([endpoint("POST", "/api/contact")]) == []
    assert e.check_endpoints([endpoint("DELETE", "/api/catalog/items/:id")]) == []

    issues = e.check_endpoints([endpoint("GET", "/api/catalog/x", True, ["verifyToken"])])
    assert found(issues) == {(IssueType.PUBLIC_ENDPOINT_HAS_AUTH, Severity.MEDIUM)}


def test_missing_auth_header_on_matched_pair():
    ep = endpoint("GET", "/api/users/:id", True, ["requireAuth"])
    without = CallSite("GET", "/api/users/42", "/api/users/:param", "src/a.js", 9, CallShape.HTTP_CLIENT_METHOD)
    with_header = CallSite(
        "GET", "/api/users/42", "/api/users/:param", "src/a.js", 10, CallShape.HTTP_CLIENT_METHOD,
        has_auth_header=True,
    )

    issues = engine().check_pairs([(ep, without), (ep, with_header)])

    assert found(issues) == {(IssueType.MISSING_AUTH_HEADER, Severity.HIGH)}
    assert len(issues) == 1
    assert issues[0].details["auth_middleware"] == ["requireAuth"]
    assert str(issues[0].source_refs[0]) == "src/a.js:9"


def test_authenticated_route_called_without_headers(parse):
    ep = endpoint("GET", "/api/users/:id", True, ["requireAuth"])
    calls = CallSiteExtractor().extract(parse("axios.get('/api/users/42');"), "src/users.js")

    reconciliation = ReconciliationEngine().reconcile([ep], calls)
    issues = reconciliation.issues + engine().evaluate([ep], reconciliation.matches)

    types = [i.type for i in issues]
    assert IssueType.MISSING_AUTH_HEADER in types
    assert IssueType.MISSING_BACKEND_ENDPOINT not in types
    assert ep.used
