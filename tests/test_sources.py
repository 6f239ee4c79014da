from pathlib import Path

from contract_audit.sources import SourceScanner


def touch(p: Path) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text("", encoding="utf-8")


def test_scan_filters_by_extension_and_ignore(tmp_path: Path):
    for rel in [
        "src/app.js",
        "src/view.tsx",
        "src/readme.md",
        "node_modules/lib/index.js",
        "dist/bundle.js",
        "src/app.test.js",
    ]:
        touch(tmp_path / rel)

    scanner = SourceScanner(tmp_path, [".js", "tsx"], ["**/node_modules/**", "dist/**", "*.test.js"])
    found = [scanner.relative(p) for p in scanner.scan()]

    assert found == ["src/app.js", "src/view.tsx"]


def test_scan_is_sorted(tmp_path: Path):
    for rel in ["b.js", "a.js", "c/a.js"]:
        touch(tmp_path / rel)
    scanner = SourceScanner(tmp_path, [".js"])
    assert [scanner.relative(p) for p in scanner.scan()] == ["a.js", "b.js", "c/a.js"]
