"""
Record types for contract_audit.

Endpoints, call sites and components are produced by the extractors,
issues by the analyzers. Every record serializes to a plain dict with
``to_dict`` and back with ``from_dict``; the analysis cache stores
exactly those dicts.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort rank, 0 being the most severe."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW]


class IssueType(str, Enum):
    MISSING_BACKEND_ENDPOINT = "MISSING_BACKEND_ENDPOINT"
    UNUSED_ENDPOINT = "UNUSED_ENDPOINT"
    DUPLICATE_ENDPOINT = "DUPLICATE_ENDPOINT"
    MISSING_URL_PARAM = "MISSING_URL_PARAM"
    EXTRA_URL_PARAM = "EXTRA_URL_PARAM"
    MISSING_BODY_FIELD = "MISSING_BODY_FIELD"
    EXTRA_BODY_FIELD = "EXTRA_BODY_FIELD"
    MISSING_QUERY_PARAM = "MISSING_QUERY_PARAM"
    SENSITIVE_ENDPOINT_NO_AUTH = "SENSITIVE_ENDPOINT_NO_AUTH"
    SENSITIVE_METHOD_NO_AUTH = "SENSITIVE_METHOD_NO_AUTH"
    MISSING_AUTH_HEADER = "MISSING_AUTH_HEADER"
    PUBLIC_ENDPOINT_HAS_AUTH = "PUBLIC_ENDPOINT_HAS_AUTH"
    DUPLICATE_COMPONENT = "DUPLICATE_COMPONENT"
    UNUSED_DS_COMPONENT = "UNUSED_DS_COMPONENT"
    VERIFY_PROPS_USAGE = "VERIFY_PROPS_USAGE"
    BACKEND_ANALYSIS_FAILED = "BACKEND_ANALYSIS_FAILED"
    FRONTEND_ANALYSIS_FAILED = "FRONTEND_ANALYSIS_FAILED"
    DESIGN_SYSTEM_ANALYSIS_FAILED = "DESIGN_SYSTEM_ANALYSIS_FAILED"


DEFAULT_SEVERITIES: dict[IssueType, Severity] = {
    IssueType.MISSING_BACKEND_ENDPOINT: Severity.CRITICAL,
    IssueType.UNUSED_ENDPOINT: Severity.LOW,
    IssueType.DUPLICATE_ENDPOINT: Severity.LOW,
    IssueType.MISSING_URL_PARAM: Severity.HIGH,
    IssueType.EXTRA_URL_PARAM: Severity.LOW,
    IssueType.MISSING_BODY_FIELD: Severity.MEDIUM,
    IssueType.EXTRA_BODY_FIELD: Severity.LOW,
    IssueType.MISSING_QUERY_PARAM: Severity.LOW,
    IssueType.SENSITIVE_ENDPOINT_NO_AUTH: Severity.CRITICAL,
    IssueType.SENSITIVE_METHOD_NO_AUTH: Severity.HIGH,
    IssueType.MISSING_AUTH_HEADER: Severity.HIGH,
    IssueType.PUBLIC_ENDPOINT_HAS_AUTH: Severity.MEDIUM,
    IssueType.DUPLICATE_COMPONENT: Severity.MEDIUM,
    IssueType.UNUSED_DS_COMPONENT: Severity.LOW,
    IssueType.VERIFY_PROPS_USAGE: Severity.LOW,
    IssueType.BACKEND_ANALYSIS_FAILED: Severity.CRITICAL,
    IssueType.FRONTEND_ANALYSIS_FAILED: Severity.CRITICAL,
    IssueType.DESIGN_SYSTEM_ANALYSIS_FAILED: Severity.HIGH,
}


def severity_for(issue_type: IssueType, severity_map: dict[str, str] | None = None) -> Severity:
    """Resolve the severity of an issue type, honoring configured overrides."""
    if severity_map and issue_type.value in severity_map:
        return Severity(severity_map[issue_type.value])
    return DEFAULT_SEVERITIES[issue_type]


class CallShape(str, Enum):
    FETCH = "fetch"
    HTTP_CLIENT_METHOD = "httpClientMethod"
    GENERIC_CLIENT = "genericClient"
    SERVICE_HEURISTIC = "serviceHeuristic"


class ComponentKind(str, Enum):
    FUNCTION = "function"
    ARROW = "arrow"
    CLASS = "class"


class ComponentCategory(str, Enum):
    BUTTONS = "buttons"
    FORMS = "forms"
    OVERLAYS = "overlays"
    NAVIGATION = "navigation"
    LAYOUT = "layout"
    TYPOGRAPHY = "typography"
    DATA_DISPLAY = "data-display"
    FEEDBACK = "feedback"
    ICONS = "icons"
    MISC = "misc"


class Scope(str, Enum):
    BACKEND = "backend"
    FRONTEND = "frontend"
    DESIGN_SYSTEM = "design_system"


def endpoint_key(method: str, normalized_path: str) -> str:
    """Comparison key shared by endpoints and call sites."""
    return f"{method.upper()} {normalized_path}"


@dataclass(frozen=True)
class SourceRef:
    file: str
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "line": self.line}

    def __str__(self) -> str:
        return f"{self.file}:{self.line}" if self.line else self.file


@dataclass
class Endpoint:
    """
    A statically declared backend route.

    ``used`` is the only mutable field and is set by the reconciliation
    engine, never by the extractor.
    """

    method: str
    raw_path: str
    path: str
    file: str
    line: int
    local_path: str = ""
    base_path: str = ""
    base_path_strategy: str | None = None
    middleware: list[str] = field(default_factory=list)
    controller: str | None = None
    controller_location: str | None = None
    requires_auth: bool = False
    path_params: list[str] = field(default_factory=list)
    query_params: list[str] = field(default_factory=list)
    body_schema: dict[str, dict[str, Any]] = field(default_factory=dict)
    description: str | None = None
    used: bool = False

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "raw_path": self.raw_path,
            "path": self.path,
            "file": self.file,
            "line": self.line,
            "local_path": self.local_path,
            "base_path": self.base_path,
            "base_path_strategy": self.base_path_strategy,
            "middleware": list(self.middleware),
            "controller": self.controller,
            "controller_location": self.controller_location,
            "requires_auth": self.requires_auth,
            "path_params": list(self.path_params),
            "query_params": list(self.query_params),
            "body_schema": {k: dict(v) for k, v in self.body_schema.items()},
            "description": self.description,
            "used": self.used,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Endpoint":
        return cls(
            method=data["method"],
            raw_path=data["raw_path"],
            path=data["path"],
            file=data["file"],
            line=data["line"],
            local_path=data.get("local_path", ""),
            base_path=data.get("base_path", ""),
            base_path_strategy=data.get("base_path_strategy"),
            middleware=list(data.get("middleware", [])),
            controller=data.get("controller"),
            controller_location=data.get("controller_location"),
            requires_auth=bool(data.get("requires_auth", False)),
            path_params=list(data.get("path_params", [])),
            query_params=list(data.get("query_params", [])),
            body_schema={k: dict(v) for k, v in data.get("body_schema", {}).items()},
            description=data.get("description"),
            used=bool(data.get("used", False)),
        )


@dataclass(frozen=True)
class CallSite:
    """A statically recognized outbound HTTP call in client code."""

    method: str
    url_raw: str
    url: str
    file: str
    line: int
    shape: CallShape
    body: tuple[str, ...] = ()
    has_auth_header: bool = False
    url_params: tuple[str, ...] = ()
    query_params: tuple[str, ...] = ()
    receiver: str | None = None

    @property
    def key(self) -> str:
        return endpoint_key(self.method, self.url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "url_raw": self.url_raw,
            "url": self.url,
            "file": self.file,
            "line": self.line,
            "shape": self.shape.value,
            "body": list(self.body),
            "has_auth_header": self.has_auth_header,
            "url_params": list(self.url_params),
            "query_params": list(self.query_params),
            "receiver": self.receiver,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CallSite":
        return cls(
            method=data["method"],
            url_raw=data["url_raw"],
            url=data["url"],
            file=data["file"],
            line=data["line"],
            shape=CallShape(data["shape"]),
            body=tuple(data.get("body", ())),
            has_auth_header=bool(data.get("has_auth_header", False)),
            url_params=tuple(data.get("url_params", ())),
            query_params=tuple(data.get("query_params", ())),
            receiver=data.get("receiver"),
        )


@dataclass
class Component:
    """
    A UI component declaration.

    ``used`` and ``used_in_files`` are filled in after extraction from the
    import analysis; ``has_tests``/``has_stories`` are filesystem checks
    and are refreshed even when the record comes from the cache.
    """

    name: str
    kind: ComponentKind
    file: str
    line: int
    scope: Scope
    props: list[dict[str, Any]] = field(default_factory=list)
    category: ComponentCategory = ComponentCategory.MISC
    complexity: int = 0
    has_tests: bool = False
    has_stories: bool = False
    has_styles: bool = False
    hooks: list[str] = field(default_factory=list)
    description: str | None = None
    is_default_export: bool = False
    is_named_export: bool = False
    in_main_exports: bool = False
    used: bool = False
    used_in_files: list[str] = field(default_factory=list)

    @property
    def prop_names(self) -> list[str]:
        return [p["name"] for p in self.props]

    def mark_used(self, file: str) -> None:
        self.used = True
        if file not in self.used_in_files:
            self.used_in_files.append(file)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "file": self.file,
            "line": self.line,
            "scope": self.scope.value,
            "props": [dict(p) for p in self.props],
            "category": self.category.value,
            "complexity": self.complexity,
            "has_tests": self.has_tests,
            "has_stories": self.has_stories,
            "has_styles": self.has_styles,
            "hooks": list(self.hooks),
            "description": self.description,
            "is_default_export": self.is_default_export,
            "is_named_export": self.is_named_export,
            "in_main_exports": self.in_main_exports,
            "used": self.used,
            "used_in_files": list(self.used_in_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Component":
        return cls(
            name=data["name"],
            kind=ComponentKind(data["kind"]),
            file=data["file"],
            line=data["line"],
            scope=Scope(data["scope"]),
            props=[dict(p) for p in data.get("props", [])],
            category=ComponentCategory(data.get("category", "misc")),
            complexity=int(data.get("complexity", 0)),
            has_tests=bool(data.get("has_tests", False)),
            has_stories=bool(data.get("has_stories", False)),
            has_styles=bool(data.get("has_styles", False)),
            hooks=list(data.get("hooks", [])),
            description=data.get("description"),
            is_default_export=bool(data.get("is_default_export", False)),
            is_named_export=bool(data.get("is_named_export", False)),
            in_main_exports=bool(data.get("in_main_exports", False)),
            used=bool(data.get("used", False)),
            used_in_files=list(data.get("used_in_files", [])),
        )


@dataclass(frozen=True)
class ImportRecord:
    """One import statement (ES module import or CommonJS require)."""

    source: str
    file: str
    line: int
    default: str | None = None
    namespace: str | None = None
    # (imported name, local name)
    specifiers: tuple[tuple[str, str], ...] = ()

    @property
    def imported_names(self) -> list[str]:
        names = [imported for imported, _ in self.specifiers]
        if self.default:
            names.append(self.default)
        return names

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "file": self.file,
            "line": self.line,
            "default": self.default,
            "namespace": self.namespace,
            "specifiers": [list(s) for s in self.specifiers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportRecord":
        return cls(
            source=data["source"],
            file=data["file"],
            line=data["line"],
            default=data.get("default"),
            namespace=data.get("namespace"),
            specifiers=tuple(tuple(s) for s in data.get("specifiers", [])),
        )


@dataclass(frozen=True)
class ControllerSymbol:
    """A function a backend file declares or exports, for controller linking."""

    name: str
    file: str
    line: int
    exported: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "file": self.file, "line": self.line, "exported": self.exported}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ControllerSymbol":
        return cls(
            name=data["name"],
            file=data["file"],
            line=data["line"],
            exported=bool(data.get("exported", False)),
        )


def _new_issue_id() -> str:
    return f"issue_{time.time_ns()}_{random.getrandbits(32):08x}"


@dataclass(frozen=True)
class Issue:
    """A finding produced by one of the analyzers. Immutable once created."""

    type: IssueType
    severity: Severity
    message: str
    source_refs: tuple[SourceRef, ...] = ()
    endpoint: str | None = None
    component: str | None = None
    suggestions: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    id: str = field(default_factory=_new_issue_id, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "source_refs": [ref.to_dict() for ref in self.source_refs],
            "endpoint": self.endpoint,
            "component": self.component,
            "suggestions": list(self.suggestions),
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal, file-scoped problem (parse failure, unreadable file)."""

    file: str
    role: str
    kind: str
    message: str
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "role": self.role,
            "kind": self.kind,
            "message": self.message,
            "line": self.line,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Diagnostic":
        return cls(
            file=data["file"],
            role=data["role"],
            kind=data["kind"],
            message=data["message"],
            line=data.get("line"),
        )


@dataclass
class FileExtraction:
    """
    Everything extracted from one file.

    Either the record lists are populated or ``diagnostic`` is set.
    """

    file: str
    role: Scope
    endpoints: list[Endpoint] = field(default_factory=list)
    call_sites: list[CallSite] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    imports: list[ImportRecord] = field(default_factory=list)
    controllers: list[ControllerSymbol] = field(default_factory=list)
    diagnostic: Diagnostic | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.diagnostic is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "role": self.role.value,
            "endpoints": [e.to_dict() for e in self.endpoints],
            "call_sites": [c.to_dict() for c in self.call_sites],
            "components": [c.to_dict() for c in self.components],
            "imports": [i.to_dict() for i in self.imports],
            "controllers": [c.to_dict() for c in self.controllers],
            "diagnostic": self.diagnostic.to_dict() if self.diagnostic else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileExtraction":
        diagnostic = data.get("diagnostic")
        return cls(
            file=data["file"],
            role=Scope(data["role"]),
            endpoints=[Endpoint.from_dict(e) for e in data.get("endpoints", [])],
            call_sites=[CallSite.from_dict(c) for c in data.get("call_sites", [])],
            components=[Component.from_dict(c) for c in data.get("components", [])],
            imports=[ImportRecord.from_dict(i) for i in data.get("imports", [])],
            controllers=[ControllerSymbol.from_dict(c) for c in data.get("controllers", [])],
            diagnostic=Diagnostic.from_dict(diagnostic) if diagnostic else None,
        )


@dataclass
class AuditResult:
    """The complete output of one run."""

    endpoints: list[Endpoint] = field(default_factory=list)
    call_sites: list[CallSite] = field(default_factory=list)
    components: list[Component] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    def issues_of(self, issue_type: IssueType) -> list[Issue]:
        return [i for i in self.issues if i.type == issue_type]

    @property
    def design_system_components(self) -> list[Component]:
        return [c for c in self.components if c.scope == Scope.DESIGN_SYSTEM]

    @property
    def frontend_components(self) -> list[Component]:
        return [c for c in self.components if c.scope == Scope.FRONTEND]

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "endpoints": [e.to_dict() for e in self.endpoints],
            "call_sites": [c.to_dict() for c in self.call_sites],
            "components": [c.to_dict() for c in self.components],
            "issues": [i.to_dict() for i in self.issues],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
