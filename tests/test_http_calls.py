from contract_audit.models import CallShape
from contract_audit.scanners.http_calls import CallSiteExtractor, infer_method


def extract(parse, source, filename="src/api.js", config=None):
    return CallSiteExtractor(config).extract(parse(source, filename), filename)


def test_recognized_call_shapes(parse):
    calls = extract(
        parse,
        """
        import axios from 'axios';

        export async function load(id, token, term) {
          const a = await fetch('/api/users');
          const b = await fetch(`/api/users/${id}`, {
            method: 'DELETE',
            headers: { Authorization: `Bearer ${token}` },
          });
          const c = await axios.post('/api/orders', { items, total }, { headers: { 'X-Auth-Token': token } });
          const d = await api.get('/api/products', { params: { page: 1 } });
          const e = await userService.getProfile(id);
          const f = await request({ url: '/api/reports', method: 'post', data: JSON.stringify({ from, to }) });
          const g = await fetch('/api/search?q=' + term);
          return [a, b, c, d, e, f, g];
        }
        """,
    )

    assert [(c.shape, c.method, c.url) for c in calls] == [
        (CallShape.FETCH, "GET", "/api/users"),
        (CallShape.FETCH, "DELETE", "/api/users/:param"),
        (CallShape.HTTP_CLIENT_METHOD, "POST", "/api/orders"),
        (CallShape.GENERIC_CLIENT, "GET", "/api/products"),
        (CallShape.SERVICE_HEURISTIC, "GET", "/userService/getProfile"),
        (CallShape.GENERIC_CLIENT, "POST", "/api/reports"),
        (CallShape.FETCH, "GET", "/api/search"),
    ]
    a, b, c, d, e, f, g = calls
    assert not a.has_auth_header
    assert b.has_auth_header
    assert b.url_params == ("id",)
    assert c.body == ("items", "total")
    assert c.has_auth_header
    assert d.query_params == ("page",)
    assert e.receiver == "userService"
    assert f.body == ("from", "to")
    assert g.query_params == ("q",)
    assert g.url_raw == "/api/search?q=${term}"


def test_fetch_body_is_unwrapped_from_json_stringify(parse):
    (call,) = extract(
        parse,
        """
        fetch('/api/orders', { method: 'POST', body: JSON.stringify({ items, note: 'x' }) });
        """,
    )
    assert call.method == "POST"
    assert call.body == ("items", "note")


def test_dynamic_url_is_not_a_call_site(parse):
    calls = extract(
        parse,
        """
        fetch(url);
        axios.get(buildUrl('users'));
        """,
    )
    assert calls == []


def test_promise_chaining_is_not_a_service_call(parse):
    calls = extract(
        parse,
        """
        apiClient.then(done);
        apiClient.interceptors.request.use(addToken);
        """,
    )
    assert calls == []


def test_custom_auth_header_names(parse):
    config = {"policy": {"auth_header_names": ["x-session"]}}
    (call,) = extract(
        parse,
        """
        axios.get('/api/me', { headers: { 'X-Session': s } });
        """,
        config=config,
    )
    assert call.has_auth_header


def test_infer_method():
    lexicon = {"get": "GET", "list": "GET", "create": "POST", "update": "PUT", "delete": "DELETE"}
    assert infer_method("getUser", lexicon) == "GET"
    assert infer_method("createOrder", lexicon) == "POST"
    assert infer_method("bulkDelete", lexicon) == "DELETE"
    assert infer_method("sync", lexicon) == "POST"
