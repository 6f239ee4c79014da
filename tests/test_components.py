import textwrap
from pathlib import Path

from contract_audit.models import ComponentCategory, ComponentKind, Scope
from contract_audit.scanners.components import ComponentExtractor, has_stories, has_tests


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def test_function_component_metadata(parse):
    parsed = parse(
        """
        import React, { useState } from 'react';

        /** A button with a spinner */
        export default function PrimaryButton({ label, onClick, disabled = false }) {
          const [busy, setBusy] = useState(false);
          return (
            <button onClick={onClick} disabled={disabled}>
              {busy ? <Spinner /> : label}
            </button>
          );
        }
        """,
        "src/components/PrimaryButton.jsx",
    )

    (component,) = ComponentExtractor().extract(parsed, "src/components/PrimaryButton.jsx", Scope.FRONTEND)

    assert component.name == "PrimaryButton"
    assert component.kind == ComponentKind.FUNCTION
    assert component.props == [
        {"name": "label", "has_default": False},
        {"name": "onClick", "has_default": False},
        {"name": "disabled", "has_default": True},
    ]
    assert component.category == ComponentCategory.BUTTONS
    assert component.hooks == ["useState"]
    # hook 2 + ternary 1 + onClick 1 + two elements 0.5 each
    assert component.complexity == 5
    assert component.is_default_export
    assert component.description == "A button with a spinner"


def test_arrow_memo_and_class_components(parse):
    parsed = parse(
        """
        import React, { memo } from 'react';

        export const Card = memo(({ title, children }) => <div className="card">{title}{children}</div>);
        const helper = () => 1;
        class Modal extends React.Component {
          render() {
            return <div />;
          }
        }
        class Store extends EventEmitter {}
        """,
        "src/widgets.jsx",
    )

    components = ComponentExtractor().extract(parsed, "src/widgets.jsx", Scope.DESIGN_SYSTEM)

    assert [(c.name, c.kind) for c in components] == [
        ("Card", ComponentKind.ARROW),
        ("Modal", ComponentKind.CLASS),
    ]
    card, modal = components
    assert card.prop_names == ["title", "children"]
    assert card.is_named_export
    assert modal.props == []


def test_complexity_is_capped(parse):
    handlers = "\n".join(f"<input onChange={{h{i}}} onBlur={{b{i}}} />" for i in range(10))
    parsed = parse(
        "function Form() {\n  return (<form>\n" + handlers + "\n</form>);\n}\n",
        "src/Form.jsx",
    )
    (component,) = ComponentExtractor().extract(parsed, "src/Form.jsx", Scope.FRONTEND)
    assert component.complexity == 10


def test_files_without_ui_markers_are_skipped(parse):
    extractor = ComponentExtractor()
    parsed = parse("export function Formatter() { return 1; }\n", "src/format.js")

    assert extractor.extract(parsed, "src/format.js", Scope.FRONTEND) == []
    assert extractor.should_skip("src/Button.test.jsx", "", Scope.FRONTEND)
    assert extractor.should_skip("src/utils/Thing.jsx", "", Scope.DESIGN_SYSTEM)
    assert not extractor.should_skip("src/utils/Thing.jsx", "", Scope.FRONTEND)


def test_categorize_name_before_path():
    extractor = ComponentExtractor()
    assert extractor.categorize("Tabs", "src/forms/Tabs.jsx") == ComponentCategory.NAVIGATION
    assert extractor.categorize("Thing", "src/forms/Thing.jsx") == ComponentCategory.FORMS
    assert extractor.categorize("DataTable", "src/DataTable.jsx") == ComponentCategory.DATA_DISPLAY
    assert extractor.categorize("Card", "src/Card.jsx") == ComponentCategory.DATA_DISPLAY
    assert extractor.categorize("Widget", "src/Widget.jsx") == ComponentCategory.MISC


def test_sibling_test_and_story_files(tmp_path: Path):
    button = tmp_path / "Button.jsx"
    write(button, "export const Button = () => <button />;\n")
    assert not has_tests(button)
    assert not has_stories(button)

    write(tmp_path / "Button.stories.jsx", "")
    write(tmp_path / "__tests__" / "Button.jsx", "")
    assert has_tests(button)
    assert has_stories(button)

    card = tmp_path / "Card.tsx"
    write(card, "")
    write(tmp_path / "Card.spec.tsx", "")
    assert has_tests(card)
