"""
Route declaration extractor for contract_audit.

Recognizes Express-style ``router.get('/path', ...middleware, handler)``
registrations and infers the mount prefix each file's routes live under.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contract_audit.config import DEFAULT_CONFIG
from contract_audit.models import Endpoint
from contract_audit.normalize import join_paths, normalize, path_param_names
from contract_audit.parsers.nodes import (
    FUNCTION_TYPES,
    arguments_of,
    callee_member,
    callee_name,
    destructured_names,
    first_parameter,
    iter_type,
    leading_comment,
    line_of,
    member_chain,
    parameter_pattern,
    string_value,
    text_of,
    unwrap,
    walk,
)

if TYPE_CHECKING:
    from typing import Any, Callable

    from contract_audit.parsers.base import ParseResult

logger = logging.getLogger(__name__)

_ROUTE_COMMENT_RE = re.compile(r"/\*\*?\s*@route\s+(/\S*)", re.IGNORECASE)
_PREFIX_CONSTANT_RES = [
    re.compile(r"(?:const|let|var)\s+BASE_PATH\s*=\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"(?:const|let|var)\s+API_PREFIX\s*=\s*['\"`]([^'\"`]+)['\"`]"),
    re.compile(r"BASE_URL.*['\"`]([^'\"`]*/api[^'\"`]*)['\"`]", re.IGNORECASE),
]
_ROUTE_FILE_SUFFIXES = (".routes", ".route", ".router")


@dataclass
class RouteFile:
    """What the base path strategies may look at for one file."""

    rel_path: str
    text: str
    local_paths: list[str] = field(default_factory=list)
    use_prefixes: list[str] = field(default_factory=list)
    generic_file_names: frozenset[str] = frozenset()
    generic_dir_names: frozenset[str] = frozenset()


# Base path strategies. Each returns a prefix or None to defer to the next.

def from_use_call(route_file: RouteFile) -> str | None:
    """``app.use('/prefix', router)`` in the same file."""
    return route_file.use_prefixes[0] if route_file.use_prefixes else None


def from_common_prefix(route_file: RouteFile) -> str | None:
    """
    Longest segment-wise prefix shared by every absolute local path.

    A single route degrades to its path minus the last segment.
    """
    split = [
        [s for s in p.split("/") if s]
        for p in route_file.local_paths
        if p.startswith("/")
    ]
    if not split:
        return None
    limit = min(len(s) for s in split)
    if len(split) == 1:
        limit -= 1
    prefix: list[str] = []
    for i in range(max(limit, 0)):
        segment = split[0][i]
        if all(s[i] == segment for s in split):
            prefix.append(segment)
        else:
            break
    if not prefix:
        return None
    return "/" + "/".join(prefix)


def from_route_comment(route_file: RouteFile) -> str | None:
    """``/** @route /api/users */`` doc comment."""
    match = _ROUTE_COMMENT_RE.search(route_file.text)
    return match.group(1) if match else None


def from_prefix_constant(route_file: RouteFile) -> str | None:
    """``const BASE_PATH = '/api/users'`` and friends."""
    for pattern in _PREFIX_CONSTANT_RES:
        match = pattern.search(route_file.text)
        if match:
            return match.group(1)
    return None


def from_file_name(route_file: RouteFile) -> str | None:
    """``users.js`` -> ``/api/users``."""
    stem = os.path.splitext(os.path.basename(route_file.rel_path))[0]
    for suffix in _ROUTE_FILE_SUFFIXES:
        if stem.endswith(suffix) and stem != suffix:
            stem = stem[: -len(suffix)]
            break
    if not stem or stem in route_file.generic_file_names:
        return None
    return f"/api/{stem}"


def from_parent_directory(route_file: RouteFile) -> str | None:
    """``users/index.js`` -> ``/api/users``."""
    parent = os.path.basename(os.path.dirname(route_file.rel_path)) or "."
    if parent in route_file.generic_dir_names:
        return None
    return f"/api/{parent}"


def from_routes_directory(route_file: RouteFile) -> str | None:
    """Anything under a ``routes/`` directory falls back to ``/api``."""
    if "routes" in route_file.rel_path.split("/")[:-1]:
        return "/api"
    return None


BASE_PATH_STRATEGIES: dict[str, Callable[[RouteFile], str | None]] = {
    "use_call": from_use_call,
    "common_prefix": from_common_prefix,
    "route_comment": from_route_comment,
    "prefix_constant": from_prefix_constant,
    "file_name": from_file_name,
    "parent_directory": from_parent_directory,
    "routes_directory": from_routes_directory,
}


def infer_base_path(route_file: RouteFile, order: list[str]) -> tuple[str, str | None]:
    """
    Run the strategies in order.

    Returns:
        (base path, name of the winning strategy) or ("", None).
    """
    for name in order:
        strategy = BASE_PATH_STRATEGIES.get(name)
        if strategy is None:
            logger.warning("Unknown base path strategy %r", name)
            continue
        result = strategy(route_file)
        if result:
            return result, name
    return "", None


class RouteExtractor:
    """
    Extract Endpoint records from one backend file.

    Config-driven: router identifiers, verbs, auth keywords and the base
    path strategy order all come from the ``routes`` config section.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        routes_config = dict(DEFAULT_CONFIG["routes"])
        if config:
            routes_config.update(config.get("routes", {}))
        self.router_identifiers = set(routes_config["router_identifiers"])
        self.http_verbs = {v.lower() for v in routes_config["http_verbs"]}
        self.auth_keywords = [k.lower() for k in routes_config["auth_middleware_keywords"]]
        self.generic_file_names = frozenset(routes_config["generic_file_names"])
        self.generic_dir_names = frozenset(routes_config["generic_dir_names"])
        self.strategy_order = list(routes_config["base_path_strategies"])

    def _is_router(self, node: Any) -> bool:
        if node is None:
            return False
        if node.type == "identifier":
            return text_of(node) in self.router_identifiers
        # express().use(...)
        if node.type == "call_expression":
            return callee_name(node) == "express"
        return False

    def _registrations(self, root: Any) -> tuple[list[tuple[Any, str, str]], list[str]]:
        """Route calls as (call node, verb, local path) plus ``.use`` prefixes."""
        routes = []
        use_prefixes = []
        for call in iter_type(root, "call_expression"):
            member = callee_member(call)
            if member is None:
                continue
            receiver, method = member
            if not self._is_router(receiver):
                continue
            args = arguments_of(call)
            if method == "use":
                if len(args) >= 2:
                    prefix = string_value(args[0])
                    if prefix and prefix.startswith("/"):
                        use_prefixes.append(prefix)
                continue
            # app.get('setting') reads a setting, it registers nothing
            if method.lower() not in self.http_verbs or len(args) < 2:
                continue
            local_path = string_value(args[0])
            if local_path is None:
                continue
            routes.append((call, method.lower(), local_path))
        return routes, use_prefixes

    def extract(self, parsed: ParseResult, rel_path: str) -> list[Endpoint]:
        """
        Extract endpoints from a parsed file.

        Args:
            parsed: Parse result for the file.
            rel_path: Root-relative POSIX path (used in records and for
                path-based base path inference).

        Returns:
            Endpoints in source order.
        """
        registrations, use_prefixes = self._registrations(parsed.root)
        if not registrations:
            return []

        route_file = RouteFile(
            rel_path=rel_path,
            text=parsed.text,
            local_paths=[path for _, _, path in registrations],
            use_prefixes=use_prefixes,
            generic_file_names=self.generic_file_names,
            generic_dir_names=self.generic_dir_names,
        )
        base_path, strategy = infer_base_path(route_file, self.strategy_order)
        logger.debug("%s: base path %r via %s", rel_path, base_path, strategy)

        endpoints = []
        for call, verb, local_path in registrations:
            middleware, controller_node = self._split_handlers(arguments_of(call)[1:])
            raw_path = join_paths(base_path, local_path)
            body_schema: dict[str, dict[str, Any]] = {}
            query_params: list[str] = []
            if controller_node is not None and controller_node.type in FUNCTION_TYPES:
                body_schema, query_params = self._handler_inputs(controller_node)

            endpoints.append(Endpoint(
                method=verb.upper(),
                raw_path=raw_path,
                path=normalize(raw_path),
                file=rel_path,
                line=line_of(call),
                local_path=local_path,
                base_path=base_path,
                base_path_strategy=strategy,
                middleware=middleware,
                controller=self._controller_ref(controller_node),
                requires_auth=self.requires_auth(middleware),
                path_params=path_param_names(raw_path),
                query_params=query_params,
                body_schema=body_schema,
                description=leading_comment(call),
            ))
        return endpoints

    def requires_auth(self, middleware: list[str]) -> bool:
        """True if any middleware name contains an auth keyword."""
        return any(
            keyword in name.lower()
            for name in middleware
            for keyword in self.auth_keywords
        )

    def _split_handlers(self, handlers: list[Any]) -> tuple[list[str], Any | None]:
        """
        Separate middleware from the controller.

        Array arguments contribute their elements as middleware; the last
        non-array argument is the controller.
        """
        plain = [(i, unwrap(h)) for i, h in enumerate(handlers) if unwrap(h).type != "array"]
        controller_index, controller = plain[-1] if plain else (None, None)

        middleware = []
        for i, handler in enumerate(handlers):
            handler = unwrap(handler)
            if i == controller_index:
                continue
            elements = handler.named_children if handler.type == "array" else [handler]
            for element in elements:
                name = self._handler_name(element)
                if name:
                    middleware.append(name)
        return middleware, controller

    @staticmethod
    def _handler_name(node: Any) -> str | None:
        node = unwrap(node)
        if node.type == "call_expression":
            return callee_name(node)
        return member_chain(node)

    def _controller_ref(self, node: Any | None) -> str | None:
        if node is None:
            return None
        if node.type in FUNCTION_TYPES:
            return None
        return self._handler_name(node)

    @staticmethod
    def _handler_inputs(handler: Any) -> tuple[dict[str, dict[str, Any]], list[str]]:
        """
        Body fields and query params an inline handler reads.

        ``req.body.x`` marks ``x`` required; ``const {a, b = 1} = req.body``
        marks ``a`` required and ``b`` optional. ``req.query`` works alike.
        """
        pattern, _ = parameter_pattern(first_parameter(handler))
        request = text_of(pattern) if pattern is not None and pattern.type == "identifier" else "req"

        body: dict[str, dict[str, Any]] = {}
        query: list[str] = []

        def record(source: str, name: str, required: bool) -> None:
            if source == "body":
                if name in body:
                    body[name]["required"] = body[name]["required"] or required
                else:
                    body[name] = {"required": required}
            elif name not in query:
                query.append(name)

        for node in walk(handler):
            if node.type == "member_expression":
                chain = member_chain(node.child_by_field_name("object"))
                prop = node.child_by_field_name("property")
                for source in ("body", "query"):
                    if chain == f"{request}.{source}" and prop is not None:
                        record(source, text_of(prop), True)
            elif node.type == "variable_declarator":
                value = member_chain(node.child_by_field_name("value"))
                for source in ("body", "query"):
                    if value == f"{request}.{source}":
                        for name, has_default in destructured_names(node.child_by_field_name("name")):
                            record(source, name, not has_default)
        return body, query
