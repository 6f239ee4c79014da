"""
Configuration constants and loading utilities for contract_audit.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


DEFAULT_IGNORE = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/coverage/**",
    "**/.git/**",
    "**/.next/**",
    "**/*.min.js",
    "**/*.test.*",
    "**/*.spec.*",
]

SEVERITY_NAMES = ("CRITICAL", "HIGH", "MEDIUM", "LOW")

HTTP_VERBS = ["get", "post", "put", "patch", "delete", "options", "head"]

# Substrings in middleware names that indicate an authentication guard
AUTH_MIDDLEWARE_KEYWORDS = [
    "auth",
    "jwt",
    "verify",
    "protect",
    "authenticate",
    "authorize",
    "guard",
    "secure",
]

# Order in which the route mount prefix is inferred; first hit wins
BASE_PATH_STRATEGIES = [
    "use_call",
    "common_prefix",
    "route_comment",
    "prefix_constant",
    "file_name",
    "parent_directory",
    "routes_directory",
]

# Verb prefix of a service method name -> HTTP method
METHOD_LEXICON = {
    "get": "GET",
    "fetch": "GET",
    "find": "GET",
    "list": "GET",
    "load": "GET",
    "search": "GET",
    "create": "POST",
    "add": "POST",
    "save": "POST",
    "update": "PUT",
    "edit": "PUT",
    "patch": "PATCH",
    "delete": "DELETE",
    "remove": "DELETE",
    "destroy": "DELETE",
}

# (category, keywords) in priority order, matched against the lowercased name
CATEGORY_KEYWORDS = [
    ("buttons", ["button", "btn"]),
    ("forms", ["input", "field", "select", "checkbox", "radio", "textarea"]),
    ("overlays", ["modal", "dialog", "drawer", "popover", "tooltip"]),
    ("data-display", ["card"]),
    ("navigation", ["nav", "menu", "breadcrumb", "tabs"]),
    ("icons", ["icon"]),
    ("layout", ["layout", "container", "grid"]),
    ("typography", ["text", "heading", "title"]),
    ("data-display", ["table", "list", "badge", "tag", "chip", "avatar"]),
    ("feedback", ["spinner", "loader", "toast", "alert", "notification", "progress"]),
]

# Directory fragment -> category, checked when no name keyword matched
CATEGORY_PATHS = [
    ("forms/", "forms"),
    ("buttons/", "buttons"),
    ("navigation/", "navigation"),
    ("layout/", "layout"),
    ("icons/", "icons"),
]


DEFAULT_CONFIG: dict[str, Any] = {
    "projects": {
        "backend": {
            "path": None,
            "extensions": [".js", ".ts", ".mjs", ".cjs"],
            "ignore": [],
        },
        "frontend": {
            "path": None,
            "extensions": [".js", ".jsx", ".ts", ".tsx"],
            "ignore": [],
        },
        "design_system": {
            "path": None,
            "extensions": [".js", ".jsx", ".ts", ".tsx"],
            "ignore": [],
        },
    },
    "ignore": list(DEFAULT_IGNORE),
    "policy": {
        # Regexes (case-insensitive) matched against "METHOD /path"
        "require_auth_patterns": [],
        "sensitive_methods": ["POST", "PUT", "PATCH", "DELETE"],
        # Exact "METHOD /path" or "/path" entries; a trailing "*" matches a prefix
        "public_endpoints": [],
        "auth_header_names": [
            "authorization",
            "auth",
            "token",
            "x-auth-token",
            "x-access-token",
            "bearer",
        ],
        # ISSUE_TYPE -> CRITICAL|HIGH|MEDIUM|LOW
        "severity_map": {},
    },
    "routes": {
        "router_identifiers": ["router", "app", "express"],
        "http_verbs": list(HTTP_VERBS),
        "auth_middleware_keywords": list(AUTH_MIDDLEWARE_KEYWORDS),
        "generic_file_names": ["index", "routes", "app", "server"],
        "generic_dir_names": ["routes", "src", "."],
        "base_path_strategies": list(BASE_PATH_STRATEGIES),
    },
    "http_calls": {
        "http_client_identifiers": ["axios", "ky", "superagent", "$http"],
        "api_identifiers": ["api", "API", "client", "httpClient"],
        "service_receiver_pattern": r"api|service|client",
        "service_method_ignore": [
            "then",
            "catch",
            "finally",
            "json",
            "text",
            "blob",
            "interceptors",
            "use",
            "defaults",
            "create",
            "request",
        ],
        "method_lexicon": dict(METHOD_LEXICON),
    },
    "components": {
        "base_classes": [
            "Component",
            "PureComponent",
            "React.Component",
            "React.PureComponent",
        ],
        "wrapper_functions": ["memo", "forwardRef", "React.memo", "React.forwardRef"],
        # Substrings that mark a file as UI code (.jsx/.tsx files always are)
        "ui_markers": ["React", "react", "jsx", "tsx", "preact"],
        "exclude_patterns": [
            r"\.test\.",
            r"\.spec\.",
            r"\.stories\.",
            r"\.config\.",
            r"\.d\.ts$",
            r"(^|/)__tests__/",
            r"(^|/)__mocks__/",
        ],
        "design_system_exclude_patterns": [
            r"(^|/)utils?/",
            r"(^|/)helpers?/",
            r"(^|/)constants?/",
            r"(^|/)themes?/",
            r"(^|/)styles?/",
            r"(^|/)index\.[jt]sx?$",
        ],
        # Import sources that refer to the design system package
        "design_system_import_patterns": [
            r"design-system",
            r"@ds/",
            r"(^|/)ui(/|$)",
            r"components/ui",
        ],
        "category_keywords": [[c, list(k)] for c, k in CATEGORY_KEYWORDS],
        "category_paths": [list(p) for p in CATEGORY_PATHS],
        # Emit VERIFY_PROPS_USAGE for used components with required props
        "verify_props_usage": True,
        "similarity_threshold": 0.8,
    },
    "cache": {
        "enabled": True,
        "directory": ".audit-cache",
        "ttl": 3600,
        "max_age": 86400,
        "memory_ttl": 300,
        "ttl_multipliers": {"raw": 1, "tree": 1, "analysis": 2},
    },
    # Extraction pool size; None means os.cpu_count()
    "workers": None,
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_config(user_config: dict[str, Any] | None) -> dict[str, Any]:
    """
    Merge a user configuration dictionary over the defaults.

    Args:
        user_config: Partial configuration (may be None).

    Returns:
        A new, complete configuration dictionary.
    """
    return _deep_merge(DEFAULT_CONFIG, user_config or {})


def load_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from YAML file, merged with defaults.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Configuration dictionary with user values merged over defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If the file does not hold a YAML mapping.
    """
    with open(config_path, "r", encoding="utf-8") as f:
        user_config = yaml.safe_load(f) or {}

    if not isinstance(user_config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    logger.debug("Loaded config from %s: %s", config_path, sorted(user_config))
    return merge_config(user_config)


def get_config_template() -> str:
    """Generate a documented YAML config template."""
    return '''# =============================================================================
# Contract Audit Configuration
# =============================================================================
# Values here are deep-merged over the built-in defaults; omit anything you
# do not want to change.

projects:
  backend:
    path: ./backend
    extensions: [".js", ".ts"]
    ignore: []
  frontend:
    path: ./frontend
    extensions: [".js", ".jsx", ".ts", ".tsx"]
    ignore: []
  design_system:
    path: ./design-system
    extensions: [".jsx", ".tsx"]
    ignore: []

# Glob patterns ignored in every project
ignore:
  - "**/node_modules/**"
  - "**/dist/**"
  - "**/build/**"
  - "**/.git/**"
  - "**/*.min.js"
  - "**/*.test.*"
  - "**/*.spec.*"

policy:
  # Regexes matched (case-insensitive) against "METHOD /path".
  # A match marks the endpoint as sensitive.
  require_auth_patterns:
    - "admin"
    - "DELETE "
  sensitive_methods: [POST, PUT, PATCH, DELETE]
  # Endpoints that are intentionally public. A trailing * matches a prefix.
  public_endpoints:
    - "GET /api/products*"
  auth_header_names: [authorization, x-auth-token]
  # Override the default severity of any issue type
  severity_map:
    UNUSED_ENDPOINT: MEDIUM

routes:
  router_identifiers: [router, app, express]
  auth_middleware_keywords: [auth, jwt, verify, protect, authenticate, authorize, guard, secure]
  # Mount prefix inference order (first hit wins)
  base_path_strategies:
    - use_call
    - common_prefix
    - route_comment
    - prefix_constant
    - file_name
    - parent_directory
    - routes_directory

http_calls:
  http_client_identifiers: [axios, ky, superagent, $http]
  api_identifiers: [api, API, client, httpClient]
  service_receiver_pattern: "api|service|client"

components:
  similarity_threshold: 0.8
  design_system_import_patterns:
    - "design-system"
    - "@ds/"

cache:
  enabled: true
  directory: .audit-cache
  ttl: 3600        # seconds; analysis entries live twice as long
  max_age: 86400   # entries older than this are always discarded
  memory_ttl: 300

workers: null      # null = number of CPUs
'''


@dataclass
class PolicyConfig:
    """
    Security and severity policy for a run.

    Built from the ``policy`` section of the configuration. Patterns that
    fail to compile are logged and dropped.
    """

    require_auth_patterns: list[re.Pattern] = field(default_factory=list)
    sensitive_methods: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})
    public_endpoints: list[str] = field(default_factory=list)
    auth_header_names: frozenset[str] = frozenset()
    severity_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "PolicyConfig":
        policy = config.get("policy", {})

        patterns = []
        for pattern in policy.get("require_auth_patterns", []) or []:
            try:
                patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning("Invalid require_auth pattern %r: %s", pattern, e)

        severity_map = {}
        for issue_type, severity in (policy.get("severity_map") or {}).items():
            value = str(severity).upper()
            if value not in SEVERITY_NAMES:
                logger.warning("Ignoring unknown severity %r for %s", severity, issue_type)
                continue
            severity_map[str(issue_type).upper()] = value

        return cls(
            require_auth_patterns=patterns,
            sensitive_methods=frozenset(
                m.upper() for m in policy.get("sensitive_methods", []) or []
            ),
            public_endpoints=list(policy.get("public_endpoints", []) or []),
            auth_header_names=frozenset(
                h.lower() for h in policy.get("auth_header_names", []) or []
            ),
            severity_map=severity_map,
        )
