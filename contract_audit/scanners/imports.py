"""
Import and export extraction for contract_audit.

Import records drive design-system usage (a frontend file importing
``Button`` from the design system package uses that component); export
information feeds component metadata.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from contract_audit.models import ImportRecord
from contract_audit.parsers.nodes import (
    arguments_of,
    callee_name,
    iter_type,
    line_of,
    property_key,
    string_value,
    text_of,
    unwrap,
)

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.parsers.base import ParseResult

logger = logging.getLogger(__name__)


@dataclass
class ExportInfo:
    default: str | None = None
    named: set[str] = field(default_factory=set)
    # Names re-exported from another module: exported name -> source
    reexports: dict[str, str] = field(default_factory=dict)


def _es_import(node: Any, rel_path: str) -> ImportRecord | None:
    source = string_value(node.child_by_field_name("source"))
    if source is None:
        return None
    default = None
    namespace = None
    specifiers = []
    for clause in node.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                default = text_of(part)
            elif part.type == "namespace_import":
                ident = [c for c in part.named_children if c.type == "identifier"]
                if ident:
                    namespace = text_of(ident[0])
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    imported = text_of(name)
                    specifiers.append((imported, text_of(alias) if alias is not None else imported))
    return ImportRecord(
        source=source,
        file=rel_path,
        line=line_of(node),
        default=default,
        namespace=namespace,
        specifiers=tuple(specifiers),
    )


def _require_import(declarator: Any, rel_path: str) -> ImportRecord | None:
    value = unwrap(declarator.child_by_field_name("value"))
    if value is None or value.type != "call_expression" or callee_name(value) != "require":
        return None
    args = arguments_of(value)
    source = string_value(args[0]) if args else None
    if source is None:
        return None
    target = declarator.child_by_field_name("name")
    default = None
    specifiers = []
    if target is not None and target.type == "identifier":
        default = text_of(target)
    elif target is not None and target.type == "object_pattern":
        for child in target.named_children:
            if child.type == "shorthand_property_identifier_pattern":
                specifiers.append((text_of(child), text_of(child)))
            elif child.type == "pair_pattern":
                key = property_key(child.child_by_field_name("key"))
                local = child.child_by_field_name("value")
                if key is not None and local is not None and local.type == "identifier":
                    specifiers.append((key, text_of(local)))
    return ImportRecord(
        source=source,
        file=rel_path,
        line=line_of(declarator),
        default=default,
        specifiers=tuple(specifiers),
    )


def extract_imports(parsed: ParseResult, rel_path: str) -> list[ImportRecord]:
    """
    Collect ES module imports and CommonJS ``require`` bindings.

    Args:
        parsed: Parse result for the file.
        rel_path: Root-relative POSIX path.

    Returns:
        Import records in source order.
    """
    records = []
    for node in iter_type(parsed.root, "import_statement", "variable_declarator"):
        if node.type == "import_statement":
            record = _es_import(node, rel_path)
        else:
            record = _require_import(node, rel_path)
        if record is not None:
            records.append(record)
    return records


def _declared_names(declaration: Any) -> list[str]:
    if declaration.type in ("lexical_declaration", "variable_declaration"):
        names = []
        for declarator in declaration.named_children:
            if declarator.type == "variable_declarator":
                name = declarator.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    names.append(text_of(name))
        return names
    name = declaration.child_by_field_name("name")
    return [text_of(name)] if name is not None else []


def extract_exports(parsed: ParseResult) -> ExportInfo:
    """Names a module exports, by ``export`` statements."""
    info = ExportInfo()
    for node in parsed.root.named_children:
        if node.type != "export_statement":
            continue
        is_default = any(child.type == "default" for child in node.children)
        source_node = node.child_by_field_name("source")
        source = string_value(source_node) if source_node is not None else None
        declaration = node.child_by_field_name("declaration")
        value = node.child_by_field_name("value")

        if declaration is not None:
            names = _declared_names(declaration)
            if is_default:
                info.default = names[0] if names else None
            else:
                info.named.update(names)
        elif is_default and value is not None:
            value = unwrap(value)
            if value.type == "identifier":
                info.default = text_of(value)
            elif value.type == "call_expression":
                # export default memo(Button)
                args = arguments_of(value)
                if args and unwrap(args[0]).type == "identifier":
                    info.default = text_of(unwrap(args[0]))

        for clause in node.named_children:
            if clause.type != "export_clause":
                continue
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                name = spec.child_by_field_name("name")
                alias = spec.child_by_field_name("alias")
                if name is None:
                    continue
                exported = text_of(alias) if alias is not None else text_of(name)
                info.named.add(exported)
                if source:
                    info.reexports[exported] = source
    return info


class DesignSystemImportMatcher:
    """Decide whether an import source refers to the design system package."""

    def __init__(self, patterns: list[str]) -> None:
        self.patterns: list[re.Pattern] = []
        for pattern in patterns:
            try:
                self.patterns.append(re.compile(pattern))
            except re.error as e:
                logger.warning("Invalid design system import pattern %r: %s", pattern, e)

    def matches(self, source: str) -> bool:
        return any(p.search(source) for p in self.patterns)

    def imported_components(self, record: ImportRecord) -> list[str]:
        """Component names an import brings in from the design system."""
        if not self.matches(record.source):
            return []
        return record.imported_names
