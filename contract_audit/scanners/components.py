"""
UI component extractor for contract_audit.

Finds React-style components: capitalized function declarations,
capitalized variables bound to arrow/function expressions (optionally
wrapped in ``memo``/``forwardRef``) and classes extending a component
base class.
"""

from __future__ import annotations

import logging
import math
import re
from pathlib import Path
from typing import TYPE_CHECKING

from contract_audit.config import DEFAULT_CONFIG
from contract_audit.models import Component, ComponentCategory, ComponentKind, Scope
from contract_audit.parsers.nodes import (
    FUNCTION_TYPES,
    arguments_of,
    callee_name,
    destructured_names,
    first_parameter,
    leading_comment,
    line_of,
    member_chain,
    parameter_pattern,
    text_of,
    unwrap,
    walk,
)
from contract_audit.scanners.imports import extract_exports

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.parsers.base import ParseResult

logger = logging.getLogger(__name__)

_COMPONENT_NAME_RE = re.compile(r"^[A-Z]")
_HOOK_RE = re.compile(r"^use[A-Z]")
_EVENT_PROP_RE = re.compile(r"^on[A-Z]")
_SOURCE_EXT_RE = re.compile(r"\.(jsx?|tsx?)$")
_JSX_TYPES = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_fragment"})
_STYLE_MARKERS = (
    "styled-components",
    "emotion",
    "className",
    "style=",
    "css`",
    "makeStyles",
    "useStyles",
    "sx=",
)

HOOK_WEIGHT = 2.0
CONDITIONAL_WEIGHT = 1.0
EVENT_HANDLER_WEIGHT = 1.0
JSX_ELEMENT_WEIGHT = 0.5
MAX_COMPLEXITY = 10


def complexity_score(node: Any) -> int:
    """
    Weighted structural complexity of a component, capped at 10.

    Hooks count 2, ternaries and ``cond && <jsx/>`` count 1, ``on*`` JSX
    attributes count 1 and every JSX element counts 0.5.
    """
    score = 0.0
    for child in walk(node):
        if child.type == "call_expression":
            name = callee_name(child)
            if name and _HOOK_RE.match(name.rsplit(".", 1)[-1]):
                score += HOOK_WEIGHT
        elif child.type == "ternary_expression":
            score += CONDITIONAL_WEIGHT
        elif child.type == "binary_expression":
            operator = child.child_by_field_name("operator")
            right = unwrap(child.child_by_field_name("right"))
            if operator is not None and text_of(operator) == "&&" and right is not None and right.type in _JSX_TYPES:
                score += CONDITIONAL_WEIGHT
        elif child.type == "jsx_attribute":
            named = child.named_children
            if named and _EVENT_PROP_RE.match(text_of(named[0])):
                score += EVENT_HANDLER_WEIGHT
        elif child.type in ("jsx_opening_element", "jsx_self_closing_element"):
            score += JSX_ELEMENT_WEIGHT
    return min(int(math.floor(score + 0.5)), MAX_COMPLEXITY)


def hooks_used(node: Any) -> list[str]:
    hooks = []
    for child in walk(node):
        if child.type == "call_expression":
            name = callee_name(child)
            short = name.rsplit(".", 1)[-1] if name else None
            if short and _HOOK_RE.match(short) and short not in hooks:
                hooks.append(short)
    return hooks


def sibling_exists(filepath: Path, infix: str) -> bool:
    """``Button.jsx`` -> does ``Button.<infix>.jsx`` exist?"""
    match = _SOURCE_EXT_RE.search(filepath.name)
    if not match:
        return False
    candidate = filepath.with_name(filepath.name[: match.start()] + f".{infix}.{match.group(1)}")
    return candidate.exists()


def has_tests(filepath: Path) -> bool:
    return (
        sibling_exists(filepath, "test")
        or sibling_exists(filepath, "spec")
        or (filepath.parent / "__tests__" / filepath.name).exists()
    )


def has_stories(filepath: Path) -> bool:
    return sibling_exists(filepath, "stories")


class ComponentExtractor:
    """
    Extract Component records from one frontend or design-system file.

    Config-driven via the ``components`` section.
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        components_config = dict(DEFAULT_CONFIG["components"])
        if config:
            components_config.update(config.get("components", {}))
        self.base_classes = set(components_config["base_classes"])
        self.wrappers = set(components_config["wrapper_functions"])
        self.ui_markers = list(components_config["ui_markers"])
        self.category_keywords = [
            (ComponentCategory(category), [k.lower() for k in keywords])
            for category, keywords in components_config["category_keywords"]
        ]
        self.category_paths = [
            (fragment.lower(), ComponentCategory(category))
            for fragment, category in components_config["category_paths"]
        ]
        self.exclude_patterns = self._compile(components_config["exclude_patterns"])
        self.ds_exclude_patterns = self._compile(components_config["design_system_exclude_patterns"])

    @staticmethod
    def _compile(patterns: list[str]) -> list[re.Pattern]:
        compiled = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning("Invalid component exclude pattern %r: %s", pattern, e)
        return compiled

    def should_skip(self, rel_path: str, text: str, scope: Scope) -> bool:
        """
        Pre-filter: tests, stories, configs, type declarations, design
        system helpers and files without UI markers hold no components.
        """
        if any(p.search(rel_path) for p in self.exclude_patterns):
            return True
        if scope == Scope.DESIGN_SYSTEM and any(p.search(rel_path) for p in self.ds_exclude_patterns):
            return True
        if rel_path.endswith((".jsx", ".tsx")):
            return False
        return not any(marker in text for marker in self.ui_markers)

    def categorize(self, name: str, rel_path: str) -> ComponentCategory:
        """Name keywords first, then directory fragments, else misc."""
        name_lower = name.lower()
        for category, keywords in self.category_keywords:
            if any(k in name_lower for k in keywords):
                return category
        path_lower = rel_path.lower()
        for fragment, category in self.category_paths:
            if fragment in path_lower:
                return category
        return ComponentCategory.MISC

    def extract(
        self,
        parsed: ParseResult,
        rel_path: str,
        scope: Scope,
        filepath: Path | None = None,
    ) -> list[Component]:
        """
        Extract components from a parsed file.

        Args:
            parsed: Parse result for the file.
            rel_path: Root-relative POSIX path.
            scope: Which codebase the file belongs to.
            filepath: Absolute path, for test/story sibling checks.

        Returns:
            Components in source order.
        """
        if self.should_skip(rel_path, parsed.text, scope):
            return []

        exports = extract_exports(parsed)
        file_has_styles = any(marker in parsed.text for marker in _STYLE_MARKERS)

        components = []
        seen: set[str] = set()
        for node in walk(parsed.root):
            found = self._match(node)
            if found is None:
                continue
            name, kind, body = found
            if name in seen:
                continue
            seen.add(name)

            components.append(Component(
                name=name,
                kind=kind,
                file=rel_path,
                line=line_of(node),
                scope=scope,
                props=self._props(body, kind),
                category=self.categorize(name, rel_path),
                complexity=complexity_score(body),
                has_tests=has_tests(filepath) if filepath else False,
                has_stories=has_stories(filepath) if filepath else False,
                has_styles=file_has_styles,
                hooks=hooks_used(body),
                description=leading_comment(node),
                is_default_export=exports.default == name,
                is_named_export=name in exports.named,
            ))
        return components

    def _unwrap_component_value(self, value: Any) -> Any | None:
        """Arrow/function expression, possibly inside memo()/forwardRef()."""
        value = unwrap(value)
        while value is not None and value.type == "call_expression" and callee_name(value) in self.wrappers:
            args = arguments_of(value)
            value = unwrap(args[0]) if args else None
        if value is not None and value.type in FUNCTION_TYPES:
            return value
        return None

    def _match(self, node: Any) -> tuple[str, ComponentKind, Any] | None:
        if node.type == "function_declaration":
            name = node.child_by_field_name("name")
            if name is not None and _COMPONENT_NAME_RE.match(text_of(name)):
                return text_of(name), ComponentKind.FUNCTION, node
        elif node.type == "variable_declarator":
            name = node.child_by_field_name("name")
            if name is None or name.type != "identifier" or not _COMPONENT_NAME_RE.match(text_of(name)):
                return None
            fn = self._unwrap_component_value(node.child_by_field_name("value"))
            if fn is not None:
                return text_of(name), ComponentKind.ARROW, fn
        elif node.type in ("class_declaration", "class"):
            name = node.child_by_field_name("name")
            if name is None or not _COMPONENT_NAME_RE.match(text_of(name)):
                return None
            if self._superclass(node) in self.base_classes:
                return text_of(name), ComponentKind.CLASS, node
        return None

    @staticmethod
    def _superclass(node: Any) -> str | None:
        for child in node.named_children:
            if child.type != "class_heritage":
                continue
            # javascript: class_heritage -> expression; typescript: extends_clause
            for part in child.named_children:
                if part.type == "extends_clause":
                    value = part.child_by_field_name("value")
                    if value is None and part.named_children:
                        value = part.named_children[0]
                    return member_chain(value)
                chain = member_chain(part)
                if chain:
                    return chain
        return None

    @staticmethod
    def _props(fn: Any, kind: ComponentKind) -> list[dict[str, Any]]:
        if kind == ComponentKind.CLASS:
            return []
        pattern, _ = parameter_pattern(first_parameter(fn))
        return [
            {"name": name, "has_default": has_default}
            for name, has_default in destructured_names(pattern)
        ]
