"""
Base parser class and registry for syntax tree providers.

To add support for another dialect:
1. Create a parser class inheriting from BaseParser
2. Implement the `parse` method
3. Register it with the @ParserRegistry.register decorator

Example:
    @ParserRegistry.register("vue", [".vue"])
    class VueParser(BaseParser):
        def parse(self, content, filepath, preferred_mode=None):
            ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from typing import Any, Callable, Type

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """A successfully parsed file."""

    tree: Any
    mode: str
    source: bytes
    text: str

    @property
    def root(self) -> Any:
        return self.tree.root_node


@dataclass
class ParseFailure:
    """A file no syntax mode could parse without errors."""

    file: str
    modes: list[str] = field(default_factory=list)
    message: str = ""
    line: int | None = None


class ParserRegistry:
    """
    Registry for syntax tree providers.

    Maps file extensions to parser classes; instances are created on demand
    and configured with the run's config.
    """

    _parser_classes: ClassVar[dict[str, Type["BaseParser"]]] = {}
    _extension_map: ClassVar[dict[str, str]] = {}  # .ext -> language name
    _cached_parsers: ClassVar[dict[tuple[str, int], "BaseParser"]] = {}  # (lang, config_id) -> instance

    @classmethod
    def register(
        cls,
        language: str,
        extensions: list[str],
    ) -> Callable[[Type["BaseParser"]], Type["BaseParser"]]:
        """
        Decorator to register a parser class.

        Args:
            language: Language name (e.g., "javascript").
            extensions: List of file extensions (e.g., [".js", ".jsx"]).

        Returns:
            Decorator function.
        """
        def decorator(parser_class: Type["BaseParser"]) -> Type["BaseParser"]:
            cls.register_parser(language, extensions, parser_class)
            return parser_class
        return decorator

    @classmethod
    def register_parser(
        cls,
        language: str,
        extensions: list[str],
        parser_class: Type["BaseParser"],
    ) -> None:
        """Register a parser class for a language."""
        cls._parser_classes[language] = parser_class

        for ext in extensions:
            ext_lower = ext.lower()
            if not ext_lower.startswith("."):
                ext_lower = "." + ext_lower
            cls._extension_map[ext_lower] = language

        logger.debug("Registered parser for %s: %s", language, extensions)

    @classmethod
    def get_parser(
        cls,
        filepath: Path,
        config: dict[str, Any] | None = None,
    ) -> "BaseParser" | None:
        """
        Get the parser for a file, configured with the given config.

        Args:
            filepath: Path to the file.
            config: Configuration dictionary to pass to the parser.

        Returns:
            Parser instance, or None if no parser handles the extension.
        """
        language = cls._extension_map.get(filepath.suffix.lower())
        if not language:
            return None

        parser_class = cls._parser_classes[language]
        cache_key = (language, id(config) if config else 0)
        if cache_key not in cls._cached_parsers:
            parser = parser_class()
            if config:
                parser.configure(config)
            cls._cached_parsers[cache_key] = parser
        return cls._cached_parsers[cache_key]


class BaseParser(ABC):
    """
    Abstract base class for syntax tree providers.

    ``parse`` never raises for malformed input: it returns a ParseFailure.
    """

    def __init__(self) -> None:
        self.config: dict[str, Any] = {}

    def configure(self, config: dict[str, Any]) -> None:
        """
        Configure the parser with the given config.

        Args:
            config: Configuration dictionary.
        """
        self.config = config

    @abstractmethod
    def modes_for(self, filepath: Path) -> list[str]:
        """Syntax modes to try for a file, in order."""
        ...

    @abstractmethod
    def parse(
        self,
        content: bytes,
        filepath: Path,
        preferred_mode: str | None = None,
    ) -> ParseResult | ParseFailure:
        """
        Parse source bytes.

        Args:
            content: File contents.
            filepath: Path of the file (selects the syntax modes).
            preferred_mode: Mode to try first, e.g. the one that succeeded
                on a previous run.

        Returns:
            ParseResult on success, ParseFailure if every mode failed.
        """
        ...
