"""
Helpers for reading tree-sitter JavaScript/TypeScript syntax trees.

All helpers are tolerant: an unexpected node shape yields None or an empty
result rather than an exception.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Iterator

FUNCTION_TYPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
})

# Wrappers that do not change the value of the wrapped expression
TRANSPARENT_TYPES = frozenset({
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "type_assertion",
    "await_expression",
})

_BLOCK_TYPES = frozenset({"program", "statement_block", "class_body", "switch_body"})

_COMMENT_MARKERS_RE = re.compile(r"^\s*(//+|/\*+|\*+/?|\*)\s?")


def text_of(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_of(node: Any) -> int:
    """1-based start line."""
    return node.start_point[0] + 1


def walk(root: Any) -> Iterator[Any]:
    """Pre-order traversal without recursion."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def iter_type(root: Any, *types: str) -> Iterator[Any]:
    wanted = set(types)
    for node in walk(root):
        if node.type in wanted:
            yield node


def unwrap(node: Any) -> Any:
    """Strip parentheses, type assertions and ``await``."""
    while node is not None and node.type in TRANSPARENT_TYPES:
        named = [c for c in node.named_children if c.type != "comment"]
        if not named:
            return node
        node = named[0]
    return node


def arguments_of(call: Any) -> list[Any]:
    """Argument nodes of a call expression (comments dropped)."""
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return [c for c in args.named_children if c.type != "comment"]


def string_value(node: Any) -> str | None:
    """
    Static string value of an expression.

    Plain strings yield their content; template literals keep their
    ``${expr}`` placeholders; ``"a" + x`` concatenations fold non-string
    operands into ``${x}``. Anything without a string part yields None.
    """
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "string":
        return text_of(node)[1:-1]
    if node.type == "template_string":
        return text_of(node)[1:-1]
    if node.type == "binary_expression":
        operator = node.child_by_field_name("operator")
        if operator is None or text_of(operator) != "+":
            return None
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        left_value = string_value(left)
        right_value = string_value(right)
        if left_value is None and right_value is None:
            return None
        if left_value is None:
            left_value = "${" + text_of(left) + "}"
        if right_value is None:
            right_value = "${" + text_of(right) + "}"
        return left_value + right_value
    return None


def member_chain(node: Any) -> str | None:
    """Dotted name of an identifier/member expression (``a.b.c``)."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type in ("identifier", "this", "property_identifier", "shorthand_property_identifier"):
        return text_of(node)
    if node.type == "member_expression":
        obj = member_chain(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        return f"{obj}.{text_of(prop)}"
    return None


def callee_member(call: Any) -> tuple[Any, str] | None:
    """
    For ``receiver.method(...)`` return (receiver node, method name).
    """
    function = unwrap(call.child_by_field_name("function"))
    if function is None or function.type != "member_expression":
        return None
    prop = function.child_by_field_name("property")
    obj = function.child_by_field_name("object")
    if prop is None or obj is None or prop.type == "private_property_identifier":
        return None
    return unwrap(obj), text_of(prop)


def callee_name(call: Any) -> str | None:
    """Dotted name of whatever a call invokes (``fetch``, ``api.get``)."""
    return member_chain(call.child_by_field_name("function"))


def property_key(node: Any) -> str | None:
    """Name of an object key node; computed keys have none."""
    if node is None:
        return None
    if node.type in ("property_identifier", "identifier", "shorthand_property_identifier"):
        return text_of(node)
    if node.type == "string":
        return text_of(node)[1:-1]
    if node.type == "number":
        return text_of(node)
    return None


def object_entries(node: Any) -> list[tuple[str, Any]]:
    """
    Static (key, value node) entries of an object literal.

    Shorthand properties map to their own identifier node. Spreads and
    computed keys are skipped.
    """
    node = unwrap(node)
    if node is None or node.type != "object":
        return []
    entries = []
    for child in node.named_children:
        if child.type == "pair":
            key = property_key(child.child_by_field_name("key"))
            if key is not None:
                entries.append((key, child.child_by_field_name("value")))
        elif child.type == "shorthand_property_identifier":
            entries.append((text_of(child), child))
        elif child.type == "method_definition":
            key = property_key(child.child_by_field_name("name"))
            if key is not None:
                entries.append((key, child))
    return entries


def object_value(node: Any, key: str) -> Any | None:
    for name, value in object_entries(node):
        if name == key:
            return value
    return None


def body_object(node: Any) -> Any | None:
    """
    The object literal carried by a request body argument, unwrapping
    ``JSON.stringify({...})``.
    """
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "object":
        return node
    if node.type == "call_expression" and callee_name(node) == "JSON.stringify":
        args = arguments_of(node)
        if args and unwrap(args[0]).type == "object":
            return unwrap(args[0])
    return None


def enclosing_statement(node: Any) -> Any:
    """The top-most ancestor that is still a statement of its block."""
    current = node
    while current.parent is not None and current.parent.type not in _BLOCK_TYPES:
        current = current.parent
    return current


def leading_comment(node: Any) -> str | None:
    """
    Text of the comment block directly above the statement holding ``node``.
    """
    statement = enclosing_statement(node)
    lines: list[str] = []
    expected_row = statement.start_point[0]
    sibling = statement.prev_sibling
    while sibling is not None and sibling.type == "comment":
        if sibling.end_point[0] < expected_row - 1:
            break
        block = []
        for raw in text_of(sibling).splitlines():
            cleaned = _COMMENT_MARKERS_RE.sub("", raw).strip()
            cleaned = cleaned.rstrip("*/").strip()
            if cleaned:
                block.append(cleaned)
        lines = block + lines
        expected_row = sibling.start_point[0]
        sibling = sibling.prev_sibling
    text = " ".join(lines).strip()
    return text or None


def first_parameter(fn: Any) -> Any | None:
    """First declared parameter of a function-like node."""
    single = fn.child_by_field_name("parameter")
    if single is not None:
        return single
    params = fn.child_by_field_name("parameters")
    if params is None:
        return None
    named = [c for c in params.named_children if c.type != "comment"]
    return named[0] if named else None


def parameter_pattern(param: Any) -> tuple[Any | None, bool]:
    """
    Resolve a parameter to its binding pattern.

    Returns:
        (pattern node, whether the whole parameter has a default value).
    """
    if param is None:
        return None, False
    has_default = False
    if param.type in ("required_parameter", "optional_parameter"):
        has_default = param.child_by_field_name("value") is not None
        param = param.child_by_field_name("pattern")
    if param is not None and param.type == "assignment_pattern":
        has_default = True
        param = param.child_by_field_name("left")
    return param, has_default


def destructured_names(pattern: Any) -> list[tuple[str, bool]]:
    """
    Names bound by an object destructuring pattern.

    Returns:
        List of (name, has_default). Rest elements are skipped.
    """
    if pattern is None or pattern.type != "object_pattern":
        return []
    names = []
    for child in pattern.named_children:
        if child.type == "shorthand_property_identifier_pattern":
            names.append((text_of(child), False))
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            if left is not None:
                names.append((text_of(left), True))
        elif child.type == "pair_pattern":
            key = property_key(child.child_by_field_name("key"))
            value = child.child_by_field_name("value")
            if key is not None:
                names.append((key, value is not None and value.type == "assignment_pattern"))
    return names
