"""
Outbound HTTP call extractor for contract_audit.

Recognizes, in priority order, ``fetch`` calls, HTTP client verb calls
(``axios.get``), API wrapper verb calls (``api.post``), config-object
requests (``request({...})``, ``axios({...})``) and, as a last resort,
calls on anything that looks like a service object (``userService.list()``).
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from contract_audit.config import DEFAULT_CONFIG, HTTP_VERBS
from contract_audit.models import CallShape, CallSite
from contract_audit.normalize import normalize, path_param_names, query_param_names
from contract_audit.parsers.nodes import (
    arguments_of,
    body_object,
    callee_member,
    iter_type,
    line_of,
    member_chain,
    object_entries,
    object_value,
    string_value,
    text_of,
    unwrap,
)

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.parsers.base import ParseResult

logger = logging.getLogger(__name__)

FETCH_NAMES = frozenset({"fetch", "window.fetch", "globalThis.fetch", "self.fetch"})
# Verbs whose second argument is the request body
BODY_VERBS = frozenset({"post", "put", "patch"})


def infer_method(name: str, lexicon: dict[str, str]) -> str:
    """
    Map a service method name to an HTTP method.

    Exact lexicon hit first, then the longest lexicon key the name starts
    with, then the first key it contains, then POST.
    """
    lower = name.lower()
    if lower in lexicon:
        return lexicon[lower].upper()
    for key in sorted(lexicon, key=len, reverse=True):
        if lower.startswith(key):
            return lexicon[key].upper()
    for key, method in lexicon.items():
        if key in lower:
            return method.upper()
    return "POST"


def _receiver_name(node: Any) -> str | None:
    """``axios`` -> axios, ``this.userService`` -> userService."""
    chain = member_chain(node)
    if chain is None:
        return None
    return chain.rsplit(".", 1)[-1]


class CallSiteExtractor:
    """
    Extract CallSite records from one frontend file.

    Config-driven via the ``http_calls`` section; auth header names come
    from ``policy.auth_header_names``.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        config = config or DEFAULT_CONFIG
        calls_config = dict(DEFAULT_CONFIG["http_calls"])
        calls_config.update(config.get("http_calls", {}))
        policy = config.get("policy", DEFAULT_CONFIG["policy"])

        self.http_clients = set(calls_config["http_client_identifiers"])
        self.api_identifiers = set(calls_config["api_identifiers"])
        self.method_ignore = set(calls_config["service_method_ignore"])
        self.lexicon = {k.lower(): v for k, v in calls_config["method_lexicon"].items()}
        self.verbs = set(HTTP_VERBS)
        self.auth_header_names = {
            h.lower() for h in policy.get("auth_header_names", DEFAULT_CONFIG["policy"]["auth_header_names"])
        }
        try:
            self.service_re = re.compile(calls_config["service_receiver_pattern"], re.IGNORECASE)
        except re.error as e:
            logger.warning("Invalid service receiver pattern %r: %s", calls_config["service_receiver_pattern"], e)
            self.service_re = re.compile(DEFAULT_CONFIG["http_calls"]["service_receiver_pattern"], re.IGNORECASE)

    def extract(self, parsed: ParseResult, rel_path: str) -> list[CallSite]:
        """
        Extract call sites from a parsed file.

        Args:
            parsed: Parse result for the file.
            rel_path: Root-relative POSIX path.

        Returns:
            Call sites in source order.
        """
        calls = []
        for call in iter_type(parsed.root, "call_expression"):
            site = self.detect(call, rel_path)
            if site is not None:
                calls.append(site)
        return calls

    def detect(self, call: Any, rel_path: str) -> CallSite | None:
        """Classify one call expression; the first matching shape wins."""
        function = unwrap(call.child_by_field_name("function"))
        if function is None:
            return None
        args = arguments_of(call)

        # 1. fetch(url, options)
        if member_chain(function) in FETCH_NAMES:
            return self._from_fetch(call, args, rel_path)

        member = callee_member(call)
        receiver_name = _receiver_name(member[0]) if member else None
        method_name = member[1] if member else None

        # 2./3. client.verb(url, data?, config?)
        if member and method_name.lower() in self.verbs:
            if receiver_name in self.http_clients:
                return self._from_verb_call(call, args, method_name, CallShape.HTTP_CLIENT_METHOD, receiver_name, rel_path)
            if receiver_name in self.api_identifiers:
                return self._from_verb_call(call, args, method_name, CallShape.GENERIC_CLIENT, receiver_name, rel_path)

        # 4. request(config), x.request(config), axios(config)
        if function.type == "identifier" and (text_of(function) == "request" or text_of(function) in self.http_clients):
            shape = CallShape.HTTP_CLIENT_METHOD if text_of(function) in self.http_clients else CallShape.GENERIC_CLIENT
            return self._from_config_call(call, args, shape, text_of(function), rel_path)
        if member and method_name == "request":
            shape = CallShape.HTTP_CLIENT_METHOD if receiver_name in self.http_clients else CallShape.GENERIC_CLIENT
            return self._from_config_call(call, args, shape, receiver_name, rel_path)

        # 5. someService.method(...)
        if member and receiver_name and self.service_re.search(receiver_name):
            if method_name in self.method_ignore:
                return None
            return self._from_service_call(call, args, receiver_name, method_name, rel_path)

        return None

    # Shapes

    def _from_fetch(self, call: Any, args: list[Any], rel_path: str) -> CallSite | None:
        url = string_value(args[0]) if args else None
        if url is None:
            return None
        options = args[1] if len(args) > 1 else None

        method = "GET"
        method_node = object_value(options, "method")
        if method_node is not None:
            value = string_value(method_node)
            if value:
                method = value.upper()

        return self._build(
            call,
            rel_path,
            shape=CallShape.FETCH,
            method=method,
            url=url,
            body=self._body_fields(object_value(options, "body")),
            headers=object_value(options, "headers"),
            receiver=None,
        )

    def _from_verb_call(
        self,
        call: Any,
        args: list[Any],
        verb: str,
        shape: CallShape,
        receiver: str | None,
        rel_path: str,
    ) -> CallSite | None:
        url = string_value(args[0]) if args else None
        if url is None:
            return None
        verb = verb.lower()
        if verb in BODY_VERBS:
            data = args[1] if len(args) > 1 else None
            config = args[2] if len(args) > 2 else None
        else:
            data = None
            config = args[1] if len(args) > 1 else None

        return self._build(
            call,
            rel_path,
            shape=shape,
            method=verb.upper(),
            url=url,
            body=self._body_fields(data),
            headers=object_value(config, "headers"),
            params=object_value(config, "params"),
            receiver=receiver,
        )

    def _from_config_call(
        self,
        call: Any,
        args: list[Any],
        shape: CallShape,
        receiver: str | None,
        rel_path: str,
    ) -> CallSite | None:
        config = args[0] if args else None
        url = string_value(object_value(config, "url"))
        if url is None:
            return None
        method = string_value(object_value(config, "method")) or "GET"
        body_node = object_value(config, "data")
        if body_node is None:
            body_node = object_value(config, "body")

        return self._build(
            call,
            rel_path,
            shape=shape,
            method=method.upper(),
            url=url,
            body=self._body_fields(body_node),
            headers=object_value(config, "headers"),
            params=object_value(config, "params"),
            receiver=receiver,
        )

    def _from_service_call(
        self,
        call: Any,
        args: list[Any],
        receiver: str,
        method_name: str,
        rel_path: str,
    ) -> CallSite:
        return self._build(
            call,
            rel_path,
            shape=CallShape.SERVICE_HEURISTIC,
            method=infer_method(method_name, self.lexicon),
            url=f"/{receiver}/{method_name}",
            body=self._body_fields(args[0] if args else None),
            headers=None,
            receiver=receiver,
        )

    # Helpers

    @staticmethod
    def _body_fields(node: Any | None) -> tuple[str, ...]:
        obj = body_object(node)
        if obj is None:
            return ()
        return tuple(key for key, _ in object_entries(obj))

    def has_auth_header(self, headers: Any | None) -> bool:
        """True if a headers object literal carries an auth header key."""
        return any(key.lower() in self.auth_header_names for key, _ in object_entries(headers))

    def _build(
        self,
        call: Any,
        rel_path: str,
        shape: CallShape,
        method: str,
        url: str,
        body: tuple[str, ...],
        headers: Any | None,
        receiver: str | None,
        params: Any | None = None,
    ) -> CallSite:
        query = query_param_names(url)
        for key, _ in object_entries(params):
            if key not in query:
                query.append(key)
        return CallSite(
            method=method,
            url_raw=url,
            url=normalize(url),
            file=rel_path,
            line=line_of(call),
            shape=shape,
            body=body,
            has_auth_header=self.has_auth_header(headers),
            url_params=tuple(path_param_names(url)),
            query_params=tuple(query),
            receiver=receiver,
        )
