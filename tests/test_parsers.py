from pathlib import Path

from contract_audit.parsers import JavaScriptParser, ParseFailure, ParseResult, ParserRegistry


def test_registry_maps_script_extensions():
    assert isinstance(ParserRegistry.get_parser(Path("a.tsx")), JavaScriptParser)
    assert isinstance(ParserRegistry.get_parser(Path("a.mjs")), JavaScriptParser)
    assert ParserRegistry.get_parser(Path("a.py")) is None


def test_typescript_parses_in_typescript_mode():
    result = JavaScriptParser().parse(b"const x: number = 1;\n", Path("a.ts"))
    assert isinstance(result, ParseResult)
    assert result.mode == "typescript"


def test_jsx_in_js_file_parses():
    result = JavaScriptParser().parse(b"const A = () => <div className='a' />;\n", Path("a.js"))
    assert isinstance(result, ParseResult)


def test_preferred_mode_is_tried_first():
    result = JavaScriptParser().parse(b"const x = 1;\n", Path("a.ts"), preferred_mode="tsx")
    assert isinstance(result, ParseResult)
    assert result.mode == "tsx"


def test_syntax_error_is_a_failure_not_an_exception():
    result = JavaScriptParser().parse(b"function (\n  {{{\n", Path("broken.js"))
    assert isinstance(result, ParseFailure)
    assert result.modes == ["javascript", "tsx"]
    assert result.line is not None
