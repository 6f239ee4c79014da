"""
Controller symbol index for contract_audit.

Routes often name their handler (``userController.list``); indexing the
functions backend files declare lets an endpoint point at its handler's
definition.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from contract_audit.models import ControllerSymbol
from contract_audit.parsers.nodes import (
    FUNCTION_TYPES,
    line_of,
    member_chain,
    object_entries,
    text_of,
    unwrap,
    walk,
)

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.models import Endpoint
    from contract_audit.parsers.base import ParseResult

logger = logging.getLogger(__name__)


def extract_controller_symbols(parsed: ParseResult, rel_path: str) -> list[ControllerSymbol]:
    """
    Collect handler-like functions a backend file defines.

    Covers function declarations, ``const x = () => {}``, class methods,
    ``exports.x = ...``, ``module.exports = { ... }`` and ``export``
    declarations.
    """
    symbols: dict[str, ControllerSymbol] = {}

    def add(name: str, node: Any, exported: bool) -> None:
        existing = symbols.get(name)
        if existing is None or (exported and not existing.exported):
            symbols[name] = ControllerSymbol(
                name=name,
                file=rel_path,
                line=existing.line if existing else line_of(node),
                exported=exported,
            )

    for node in walk(parsed.root):
        exported = node.parent is not None and node.parent.type == "export_statement"
        if node.type in ("function_declaration", "generator_function_declaration"):
            name = node.child_by_field_name("name")
            if name is not None:
                add(text_of(name), node, exported)
        elif node.type == "variable_declarator":
            value = unwrap(node.child_by_field_name("value"))
            name = node.child_by_field_name("name")
            declaration = node.parent
            exported = (
                declaration is not None
                and declaration.parent is not None
                and declaration.parent.type == "export_statement"
            )
            if value is not None and value.type in FUNCTION_TYPES and name is not None:
                add(text_of(name), node, exported)
        elif node.type == "method_definition":
            name = node.child_by_field_name("name")
            if name is not None and text_of(name) != "constructor":
                add(text_of(name), node, False)
        elif node.type == "assignment_expression":
            target = member_chain(node.child_by_field_name("left"))
            value = unwrap(node.child_by_field_name("right"))
            if target is None or value is None:
                continue
            if target == "module.exports" and value.type == "object":
                for key, entry in object_entries(value):
                    add(key, entry, True)
            elif target.startswith(("exports.", "module.exports.")):
                add(target.rsplit(".", 1)[-1], node, True)
            elif target == "module.exports" and value.type == "identifier":
                add(text_of(value), node, True)
    return sorted(symbols.values(), key=lambda s: s.line)


class ControllerIndex:
    """Resolve controller references to their definitions."""

    def __init__(self, symbols: list[ControllerSymbol]) -> None:
        self._by_name: dict[str, list[ControllerSymbol]] = {}
        for symbol in symbols:
            self._by_name.setdefault(symbol.name, []).append(symbol)

    def resolve(self, reference: str | None) -> ControllerSymbol | None:
        """
        Find the definition for ``list`` or ``userController.list``.

        Exported definitions win over local ones.
        """
        if not reference:
            return None
        name = reference.rsplit(".", 1)[-1]
        candidates = self._by_name.get(name)
        if not candidates:
            return None
        exported = [c for c in candidates if c.exported]
        return (exported or candidates)[0]

    def link(self, endpoints: list[Endpoint]) -> int:
        """
        Fill ``controller_location`` on endpoints whose controller resolves.

        Returns:
            Number of endpoints linked.
        """
        linked = 0
        for endpoint in endpoints:
            symbol = self.resolve(endpoint.controller)
            if symbol is not None:
                endpoint.controller_location = f"{symbol.file}:{symbol.line}"
                linked += 1
        logger.debug("Linked %d of %d endpoints to controllers", linked, len(endpoints))
        return linked
