"""
URL and route path normalization for contract_audit.

``normalize`` turns a raw route path or client URL into the comparison key
shared by endpoints and call sites. It is pure, total and idempotent.
"""

from __future__ import annotations

import re

PARAM_TOKEN = ":param"

_ORIGIN_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://[^/?#]*")
_NAMED_PARAM_RE = re.compile(r"^:([A-Za-z_$][\w$]*)(\(.*\))?\??$")
_NUMERIC_RE = re.compile(r"^\d+$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_IDENTIFIER_RE = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER_LITERAL_RE = re.compile(r"^\s*-?\d+(\.\d+)?\s*$")


def _interpolation_end(text: str, start: int) -> int:
    """Index just past the ``}`` closing the ``${`` at ``start`` (or len(text))."""
    depth = 0
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return len(text)


def iter_interpolations(text: str) -> list[tuple[int, int, str]]:
    """
    Find ``${...}`` interpolations, honoring nested braces.

    Returns:
        List of (start, end, expression) tuples.
    """
    found = []
    i = text.find("${")
    while i != -1:
        end = _interpolation_end(text, i)
        expr = text[i + 2:end - 1] if text[end - 1:end] == "}" else text[i + 2:end]
        found.append((i, end, expr))
        i = text.find("${", end)
    return found


def _replace_interpolations(text: str, token: str = PARAM_TOKEN) -> str:
    parts = []
    last = 0
    for start, end, _ in iter_interpolations(text):
        parts.append(text[last:start])
        parts.append(token)
        last = end
    parts.append(text[last:])
    return "".join(parts)


def strip_origin(url: str) -> str:
    """
    Remove a leading ``scheme://host[:port]`` or a leading base-URL
    interpolation (``${API_URL}/users`` -> ``/users``).
    """
    url = _ORIGIN_RE.sub("", url, count=1)
    if url.startswith("${"):
        end = _interpolation_end(url, 0)
        rest = url[end:]
        if rest == "" or rest.startswith("/"):
            url = rest
    return url


def _find_outside_interpolations(text: str, char: str) -> int:
    spans = iter_interpolations(text)
    for i, ch in enumerate(text):
        if ch == char and not any(start <= i < end for start, end, _ in spans):
            return i
    return -1


def split_query(url: str) -> tuple[str, str]:
    """Split a URL into (path, query string); the fragment is dropped."""
    cut = _find_outside_interpolations(url, "#")
    if cut != -1:
        url = url[:cut]
    cut = _find_outside_interpolations(url, "?")
    if cut == -1:
        return url, ""
    return url[:cut], url[cut + 1:]


def canonical_segment(segment: str) -> str:
    """Canonicalize one path segment."""
    if PARAM_TOKEN in segment and segment != PARAM_TOKEN:
        return segment
    if "${" in segment:
        segment = _replace_interpolations(segment)
        return segment
    if _NAMED_PARAM_RE.match(segment) or _NUMERIC_RE.match(segment) or _UUID_RE.match(segment):
        return PARAM_TOKEN
    return segment


def raw_segments(url: str) -> list[str]:
    """Non-empty raw path segments of a URL (origin and query removed)."""
    path, _ = split_query(strip_origin((url or "").strip()))
    segments = []
    # Split on "/" outside interpolations only
    depth = 0
    current = []
    i = 0
    while i < len(path):
        ch = path[i]
        if path.startswith("${", i):
            depth += 1
            current.append("${")
            i += 2
            continue
        if ch == "{" and depth:
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
        if ch == "/" and depth == 0:
            if current:
                segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    if current:
        segments.append("".join(current))
    return segments


def normalize(url: str | None) -> str:
    """
    Canonicalize a route path or URL into a comparison key.

    Steps:
        1. Strip ``scheme://host[:port]`` and a leading ``${BASE}`` origin.
        2. Drop the query string and fragment.
        3. Replace each ``${...}`` interpolation with ``:param``; named
           (``:id``), numeric and UUID segments become ``:param`` as well.
        4. Collapse repeated slashes, force one leading slash and drop the
           trailing one.

    Examples:
        >>> normalize("/api/users/${id}")
        '/api/users/:param'
        >>> normalize("https://x.io:8080//api/users/123/?q=1")
        '/api/users/:param'
    """
    segments = [canonical_segment(s) for s in raw_segments(url or "")]
    return "/" + "/".join(segments)


def interpolation_name(expr: str) -> str | None:
    """
    Parameter name carried by an interpolated expression.

    ``user.id`` -> ``id``; ``getId()`` -> ``getId``; numeric literals have none.
    """
    if _NUMBER_LITERAL_RE.match(expr):
        return None
    names = _IDENTIFIER_RE.findall(expr)
    return names[-1] if names else None


def segment_param_name(segment: str) -> str | None:
    """Name of the parameter a raw segment carries, if any."""
    match = _NAMED_PARAM_RE.match(segment)
    if match:
        return match.group(1)
    spans = iter_interpolations(segment)
    if spans:
        return interpolation_name(spans[-1][2])
    return None


def path_param_names(url: str) -> list[str]:
    """
    Names of path parameters in a raw path or URL.

    Both ``:name`` segments and ``${expr}`` interpolations count; literal
    values (``/users/42``) carry no name.
    """
    names = []
    for segment in raw_segments(url):
        if segment.startswith(":"):
            name = segment_param_name(segment)
            if name and name not in names:
                names.append(name)
            continue
        for _, _, expr in iter_interpolations(segment):
            name = interpolation_name(expr)
            if name and name not in names:
                names.append(name)
    return names


def query_param_names(url: str) -> list[str]:
    """Keys of the query string of a raw URL (``?a=1&b=${x}`` -> [a, b])."""
    _, query = split_query(strip_origin((url or "").strip()))
    names = []
    for part in query.split("&"):
        key = part.split("=", 1)[0].strip()
        if not key or "${" in key:
            continue
        if key not in names:
            names.append(key)
    return names


def join_paths(base: str, local: str) -> str:
    """Concatenate a mount prefix and a local route path."""
    if not base:
        return local or "/"
    if not local:
        return base
    return base.rstrip("/") + "/" + local.lstrip("/")
