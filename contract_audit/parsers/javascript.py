"""
JavaScript/TypeScript parser for contract_audit, backed by tree-sitter.
"""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING

from tree_sitter_language_pack import get_parser

from contract_audit.parsers.base import BaseParser, ParseFailure, ParseResult, ParserRegistry
from contract_audit.utils import get_content_hash

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Grammars tried per extension, first one producing an error-free tree wins
MODE_ORDER = {
    ".ts": ["typescript", "tsx"],
    ".mts": ["typescript", "tsx"],
    ".cts": ["typescript", "tsx"],
    ".tsx": ["tsx", "typescript"],
    ".js": ["javascript", "tsx"],
    ".jsx": ["javascript", "tsx"],
    ".mjs": ["javascript", "tsx"],
    ".cjs": ["javascript", "tsx"],
}
DEFAULT_MODES = ["javascript", "tsx"]

_local = threading.local()


def _thread_parser(mode: str) -> Any:
    """tree-sitter parsers are not shared between threads."""
    parsers = getattr(_local, "parsers", None)
    if parsers is None:
        parsers = _local.parsers = {}
    if mode not in parsers:
        parsers[mode] = get_parser(mode)
    return parsers[mode]


@lru_cache(maxsize=512)
def _parse_cached(content_hash: str, content: bytes, mode: str) -> Any:
    """Parse with memoization on content hash, so identical files parse once."""
    return _thread_parser(mode).parse(content)


def first_error_line(root: Any) -> int | None:
    """1-based line of the first ERROR or MISSING node, if any."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None


@ParserRegistry.register("javascript", list(MODE_ORDER))
class JavaScriptParser(BaseParser):
    """
    JavaScript, TypeScript and JSX parser.

    Tries each syntax mode for the file's extension in order; a mode
    succeeds when its tree contains no error nodes.
    """

    def modes_for(self, filepath: Path) -> list[str]:
        return list(MODE_ORDER.get(filepath.suffix.lower(), DEFAULT_MODES))

    def parse(
        self,
        content: bytes,
        filepath: Path,
        preferred_mode: str | None = None,
    ) -> ParseResult | ParseFailure:
        modes = self.modes_for(filepath)
        if preferred_mode in modes:
            modes.remove(preferred_mode)
            modes.insert(0, preferred_mode)

        content_hash = get_content_hash(content)
        error_line = None
        for mode in modes:
            tree = _parse_cached(content_hash, content, mode)
            if not tree.root_node.has_error:
                return ParseResult(
                    tree=tree,
                    mode=mode,
                    source=content,
                    text=content.decode("utf-8", errors="replace"),
                )
            if error_line is None:
                error_line = first_error_line(tree.root_node)
            logger.debug("%s: syntax errors in %s mode", filepath, mode)

        return ParseFailure(
            file=str(filepath),
            modes=modes,
            message=f"Syntax error near line {error_line} in modes {', '.join(modes)}",
            line=error_line,
        )
