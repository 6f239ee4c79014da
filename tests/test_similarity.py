from contract_audit.analyzers.similarity import SimilarityMatcher, canonical_name, similarity_ratio
from contract_audit.models import Component, ComponentKind, IssueType, Scope


def component(name, scope, file=None, props=None, used=False):
    c = Component(
        name=name,
        kind=ComponentKind.FUNCTION,
        file=file or f"{scope.value}/{name}.jsx",
        line=1,
        scope=scope,
        props=props or [],
    )
    if used:
        c.mark_used("src/Page.jsx")
    return c


DS = Scope.DESIGN_SYSTEM
FE = Scope.FRONTEND


def test_canonical_names():
    assert canonical_name("Btn") == "button"
    assert canonical_name("UIButtonComponent") == "button"
    assert canonical_name("DsDialog") == "modal"
    assert canonical_name("Panel") == "card"


def test_similarity_ratio():
    assert similarity_ratio("button", "button") == 1.0
    assert similarity_ratio("", "") == 1.0
    assert round(similarity_ratio("kitten", "sitting"), 3) == round(4 / 7, 3)


def test_btn_duplicates_unused_button():
    ds = [component("Button", DS)]
    fe = [component("Btn", FE)]

    issues = SimilarityMatcher().analyze(ds, fe)

    assert [i.type for i in issues] == [IssueType.DUPLICATE_COMPONENT]
    assert issues[0].details["design_system_component"] == "Button"
    assert issues[0].details["similarity"] == 1.0


def test_used_twin_is_not_a_duplicate():
    ds = [component("Button", DS, used=True)]
    fe = [component("Button", FE)]

    assert SimilarityMatcher({"components": {"verify_props_usage": False}}).analyze(ds, fe) == []


def test_wrapper_importing_the_twin_is_skipped():
    ds = [component("Button", DS)]
    fe = [component("Button", FE, file="src/Button.jsx")]

    issues = SimilarityMatcher().analyze(ds, fe, {"src/Button.jsx": ["Button"]})

    assert [i.type for i in issues] == [IssueType.UNUSED_DS_COMPONENT]


def test_unused_component_not_claimed_by_duplicate():
    ds = [component("Button", DS), component("Avatar", DS)]
    fe = [component("Btn", FE), component("Chart", FE)]

    issues = SimilarityMatcher().analyze(ds, fe)

    assert sorted((i.type.value, i.component) for i in issues) == [
        ("DUPLICATE_COMPONENT", "Btn"),
        ("UNUSED_DS_COMPONENT", "Avatar"),
    ]


def test_threshold_is_configurable():
    ds = [component("Tooltip", DS)]
    fe = [component("Toltip", FE)]

    assert [i.type for i in SimilarityMatcher().analyze(ds, fe)] == [IssueType.DUPLICATE_COMPONENT]
    strict = SimilarityMatcher({"components": {"similarity_threshold": 0.9}})
    assert [i.type for i in strict.analyze(ds, fe)] == [IssueType.UNUSED_DS_COMPONENT]


def test_verify_props_usage():
    props = [
        {"name": "label", "has_default": False},
        {"name": "size", "has_default": True},
        {"name": "children", "has_default": False},
    ]
    ds = [component("Button", DS, props=props, used=True)]

    issues = SimilarityMatcher().analyze(ds, [])

    assert [i.type for i in issues] == [IssueType.VERIFY_PROPS_USAGE]
    assert issues[0].details == {"required_props": ["label"]}


def test_missing_component_set_skips_everything():
    assert SimilarityMatcher().analyze([], [component("Btn", FE)]) == []
    assert SimilarityMatcher().analyze([component("Button", DS)], None) == []
