import textwrap
from pathlib import Path

import pytest

from contract_audit.parsers import JavaScriptParser, ParseResult


@pytest.fixture
def parse():
    """Parse an inline snippet; fails the test on a syntax error."""
    parser = JavaScriptParser()

    def _parse(source: str, filename: str = "file.js") -> ParseResult:
        result = parser.parse(textwrap.dedent(source).encode("utf-8"), Path(filename))
        assert isinstance(result, ParseResult), result
        return result

    return _parse
