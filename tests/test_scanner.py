import json
import textwrap

import pytest

from contract_audit.models import IssueType
from contract_audit.scanner import AuditConfigError, ContractAuditor


def write(p, s):
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s).lstrip(), encoding="utf-8")


def make_config(tmp_path, **roots):
    projects = {role: {"path": str(tmp_path / name)} for role, name in roots.items()}
    return {
        "projects": projects,
        "cache": {"directory": str(tmp_path / "cache")},
        "workers": 2,
    }


@pytest.fixture
def orders_project(tmp_path):
    write(
        tmp_path / "api" / "routes" / "orders.js",
        """
        const router = require('express').Router();
        router.post('/', requireAuth, createOrder);
        module.exports = router;
        """,
    )
    write(
        tmp_path / "web" / "src" / "orders.js",
        """
        export function placeOrder(items, token) {
          return api.post('/api/orders', { items }, { headers: { Authorization: `Bearer ${token}` } });
        }
        """,
    )
    return tmp_path


def test_matched_pair_with_auth_header_is_clean(orders_project):
    result = ContractAuditor(make_config(orders_project, backend="api", frontend="web")).run()

    assert [e.key for e in result.endpoints] == ["POST /api/orders"]
    assert result.endpoints[0].requires_auth
    assert result.endpoints[0].used
    assert [c.key for c in result.call_sites] == ["POST /api/orders"]
    assert result.issues == []
    assert result.summary["endpoints"]["coverage_percent"] == 100.0
    assert result.summary["has_critical"] is False


def test_missing_backend_endpoint_is_critical(orders_project):
    write(
        orders_project / "web" / "src" / "refunds.js",
        """
        export const refund = (id) => fetch(`/api/refunds/${id}`, { method: 'POST' });
        """,
    )

    result = ContractAuditor(make_config(orders_project, backend="api", frontend="web")).run()

    missing = result.issues_of(IssueType.MISSING_BACKEND_ENDPOINT)
    assert [i.endpoint for i in missing] == ["POST /api/refunds/:param"]
    assert result.summary["has_critical"] is True


def test_second_run_is_served_from_cache(orders_project):
    config = make_config(orders_project, backend="api", frontend="web")

    first = ContractAuditor(config).run()
    second = ContractAuditor(config).run()

    assert first.summary["cache_hits"] == 0
    assert second.summary["cache_hits"] == 2
    assert [e.to_dict() for e in second.endpoints] == [e.to_dict() for e in first.endpoints]
    assert second.issues == []


def test_unparseable_file_becomes_a_diagnostic(orders_project):
    write(orders_project / "web" / "src" / "broken.js", "function (\n  {{{\n")

    result = ContractAuditor(make_config(orders_project, backend="api", frontend="web")).run()

    assert [(d.file, d.kind) for d in result.diagnostics] == [("src/broken.js", "parse_error")]
    assert result.summary["diagnostics"]["by_kind"] == {"parse_error": 1}
    assert result.issues_of(IssueType.FRONTEND_ANALYSIS_FAILED) == []
    assert len(result.call_sites) == 1


def test_role_where_every_file_fails(tmp_path):
    write(tmp_path / "api" / "routes.js", "router.get('/x', h);\n")
    write(tmp_path / "web" / "broken.js", "function (\n  {{{\n")

    result = ContractAuditor(make_config(tmp_path, backend="api", frontend="web")).run()

    assert len(result.issues_of(IssueType.FRONTEND_ANALYSIS_FAILED)) == 1


def test_backend_only_skips_reconciliation(orders_project):
    write(
        orders_project / "api" / "routes" / "users.js",
        """
        router.delete('/:id', removeUser);
        """,
    )

    result = ContractAuditor(make_config(orders_project, backend="api")).run()

    types = {i.type for i in result.issues}
    assert IssueType.UNUSED_ENDPOINT not in types
    assert IssueType.SENSITIVE_ENDPOINT_NO_AUTH in types
    assert result.summary["endpoints"]["total"] == 2


def test_missing_roots_are_config_errors(tmp_path):
    with pytest.raises(AuditConfigError):
        ContractAuditor({"cache": {"enabled": False}}).run()
    with pytest.raises(AuditConfigError):
        ContractAuditor(make_config(tmp_path, backend="nope")).run()


def test_design_system_usage(tmp_path):
    write(
        tmp_path / "ui" / "Button.jsx",
        """
        export function Button({ label, size = 'md' }) {
          return <button className={size}>{label}</button>;
        }
        """,
    )
    write(
        tmp_path / "ui" / "Avatar.jsx",
        """
        export const Avatar = ({ src }) => <img src={src} />;
        """,
    )
    write(tmp_path / "ui" / "index.js", "export { Button } from './Button';\n")
    write(
        tmp_path / "web" / "src" / "Page.jsx",
        """
        import { Button } from 'design-system';

        export function Page() {
          return <Button label="Save" />;
        }
        """,
    )

    result = ContractAuditor(make_config(tmp_path, frontend="web", design_system="ui")).run()

    ds = {c.name: c for c in result.design_system_components}
    assert set(ds) == {"Button", "Avatar"}
    assert ds["Button"].used
    assert ds["Button"].used_in_files == ["src/Page.jsx"]
    assert ds["Button"].in_main_exports
    assert not ds["Avatar"].in_main_exports

    found = sorted((i.type.value, i.component) for i in result.issues)
    assert found == [
        ("UNUSED_DS_COMPONENT", "Avatar"),
        ("VERIFY_PROPS_USAGE", "Button"),
    ]
    assert result.summary["components"]["adoption_percent"] == 50.0
    json.dumps(result.to_dict(), default=str)
