"""
Syntax tree providers for contract_audit.

Each parser turns source bytes into a tree-sitter syntax tree or a typed
parse failure. Custom parsers can be added by inheriting from BaseParser.
"""

from contract_audit.parsers.base import BaseParser, ParseFailure, ParseResult, ParserRegistry
from contract_audit.parsers.javascript import JavaScriptParser

__all__ = [
    "BaseParser",
    "JavaScriptParser",
    "ParseFailure",
    "ParseResult",
    "ParserRegistry",
]
