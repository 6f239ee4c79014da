from contract_audit.analyzers.reconcile import ReconciliationEngine
from contract_audit.config import PolicyConfig
from contract_audit.models import CallShape, CallSite, Endpoint, IssueType, Severity
from contract_audit.normalize import normalize, path_param_names, query_param_names


def endpoint(method, raw_path, file="routes/api.js", line=1, **kwargs):
    return Endpoint(
        method=method,
        raw_path=raw_path,
        path=normalize(raw_path),
        file=file,
        line=line,
        path_params=path_param_names(raw_path),
        **kwargs,
    )


def call(method, url, file="src/api.js", line=1, **kwargs):
    return CallSite(
        method=method,
        url_raw=url,
        url=normalize(url),
        file=file,
        line=line,
        shape=CallShape.HTTP_CLIENT_METHOD,
        url_params=tuple(path_param_names(url)),
        query_params=tuple(query_param_names(url)),
        **kwargs,
    )


def types(issues):
    return [i.type for i in issues]


def test_one_missing_issue_per_unmatched_call():
    endpoints = [endpoint("GET", "/api/users")]
    calls = [
        call("GET", "/api/users"),
        call("POST", "/api/users", line=2),
        call("GET", "/api/orders", line=3),
        call("GET", "/api/orders", line=4),
    ]

    result = ReconciliationEngine().reconcile(endpoints, calls)

    missing = [i for i in result.issues if i.type == IssueType.MISSING_BACKEND_ENDPOINT]
    assert len(missing) == 3
    assert all(i.severity == Severity.CRITICAL for i in missing)
    assert [i.source_refs[0].line for i in missing] == [2, 3, 4]
    assert endpoints[0].used
    assert len(result.matches) == 1


def test_each_unused_endpoint_reported_once():
    endpoints = [endpoint("GET", "/api/a"), endpoint("GET", "/api/b"), endpoint("DELETE", "/api/a")]

    result = ReconciliationEngine().reconcile(endpoints, [call("GET", "/api/a"), call("GET", "/api/a")])

    unused = [i.endpoint for i in result.issues if i.type == IssueType.UNUSED_ENDPOINT]
    assert unused == ["GET /api/b", "DELETE /api/a"]


def test_duplicate_declarations_later_one_wins():
    first = endpoint("GET", "/api/users/:id", file="a.js")
    second = endpoint("GET", "/api/users/:userId", file="b.js")

    result = ReconciliationEngine().reconcile([first, second], [call("GET", "/api/users/7")])

    assert second.used
    assert not first.used
    assert result.declarations["GET /api/users/:param"] == [first, second]
    assert types(result.issues) == [IssueType.DUPLICATE_ENDPOINT]
    assert result.issues[0].source_refs[0].file == "a.js"


def test_literal_and_renamed_params_are_accepted():
    ep = endpoint("GET", "/api/users/:id")
    engine = ReconciliationEngine()

    assert engine.check_pair(ep, call("GET", "/api/users/42")) == []
    assert engine.check_pair(ep, call("GET", "/api/users/${user.id}")) == []
    assert engine.check_pair(ep, call("GET", "/api/users/${userId}")) == []


def test_param_in_a_literal_route_slot_is_extra():
    ep = endpoint("GET", "/api/v/1")

    result = ReconciliationEngine().reconcile([ep], [call("GET", "/api/v/${version}")])

    assert ep.used
    assert [(i.type, i.details) for i in result.issues] == [
        (IssueType.EXTRA_URL_PARAM, {"param": "version"})
    ]
    assert result.issues[0].severity == Severity.LOW


def test_declared_param_left_unfilled():
    ep = endpoint("GET", "/api/users/:id")

    issues = ReconciliationEngine().check_pair(ep, call("GET", "/api/users/me"))

    assert [(i.type, i.details) for i in issues] == [(IssueType.MISSING_URL_PARAM, {"param": "id"})]
    assert issues[0].severity == Severity.HIGH


def test_body_field_checks():
    ep = endpoint(
        "POST",
        "/api/users",
        body_schema={"name": {"required": True}, "role": {"required": False}},
    )
    engine = ReconciliationEngine()

    issues = engine.check_pair(ep, call("POST", "/api/users", body=("role", "nickname")))

    assert sorted((i.type.value, i.details.get("field")) for i in issues) == [
        ("EXTRA_BODY_FIELD", "nickname"),
        ("MISSING_BODY_FIELD", "name"),
    ]
    # no body extracted, nothing to compare
    assert engine.check_pair(ep, call("POST", "/api/users")) == []


def test_missing_query_param():
    ep = endpoint("GET", "/api/search", query_params=["q", "page"])

    issues = ReconciliationEngine().check_pair(ep, call("GET", "/api/search?q=x"))

    assert types(issues) == [IssueType.MISSING_QUERY_PARAM]
    assert issues[0].details == {"param": "page"}
    assert issues[0].severity == Severity.LOW


def test_severity_override():
    policy = PolicyConfig.from_config({"policy": {"severity_map": {"UNUSED_ENDPOINT": "HIGH"}}})

    result = ReconciliationEngine(policy).reconcile([endpoint("GET", "/x")], [])

    assert result.issues[0].severity == Severity.HIGH
