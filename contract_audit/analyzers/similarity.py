"""
Component similarity analysis for contract_audit.

Cross-references frontend components against the design system to flag
components that were re-implemented instead of reused, design system
components nobody imports, and used components whose required props are
worth a manual look.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import TYPE_CHECKING

from contract_audit.models import Issue, IssueType, SourceRef, severity_for

if TYPE_CHECKING:
    from typing import Any

    from contract_audit.models import Component, ImportRecord

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.8

# Synonyms folded to the first token of each group
SYNONYM_GROUPS = [
    ("button", "btn"),
    ("input", "field"),
    ("modal", "dialog"),
    ("card", "panel"),
]

_SUFFIX_RE = re.compile(r"component$")
_PREFIX_RE = re.compile(r"^(ui|ds)")


def canonical_name(name: str) -> str:
    """
    Normalize a component name for comparison.

    ``UIButtonComponent`` -> ``button``; ``DsBtn`` -> ``button``.
    """
    value = name.lower()
    value = _SUFFIX_RE.sub("", value)
    value = _PREFIX_RE.sub("", value)
    for group in SYNONYM_GROUPS:
        canonical = group[0]
        pattern = "|".join(re.escape(token) for token in sorted(group, key=len, reverse=True))
        value = re.sub(pattern, canonical, value, count=1)
    return value


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity_ratio(a: str, b: str) -> float:
    """(longer - distance) / longer; two empty strings are identical."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein(a, b)) / longer


class SimilarityMatcher:
    """
    Fuzzy-match frontend components against design system components.

    Config-driven via ``components.similarity_threshold`` and
    ``components.verify_props_usage``.
    """

    def __init__(self, config: dict[str, Any] | None = None, severity_map: dict[str, str] | None = None) -> None:
        components_config = (config or {}).get("components", {})
        self.threshold = float(components_config.get("similarity_threshold", DEFAULT_THRESHOLD))
        self.verify_props = bool(components_config.get("verify_props_usage", True))
        self.severity_map = severity_map or {}

    def _issue(self, issue_type: IssueType, message: str, **kwargs) -> Issue:
        return Issue(
            type=issue_type,
            severity=severity_for(issue_type, self.severity_map),
            message=message,
            **kwargs,
        )

    def score(self, frontend_name: str, ds_name: str) -> float:
        """
        Similarity of two component names in [0, 1].

        Containment of one canonical name in the other counts as 1.0.
        """
        a = canonical_name(frontend_name)
        b = canonical_name(ds_name)
        if a == b:
            return 1.0
        if a and b and (a in b or b in a):
            return 1.0
        return similarity_ratio(a, b)

    def best_match(self, component: Component, ds_components: list[Component]) -> tuple[Component, float] | None:
        """Highest-scoring design system twin above the threshold, if any."""
        best = None
        best_ratio = 0.0
        for candidate in ds_components:
            ratio = self.score(component.name, candidate.name)
            if ratio > best_ratio:
                best, best_ratio = candidate, ratio
        if best is None:
            return None
        # Containment scores exactly 1.0, so it always clears the threshold
        if best_ratio > self.threshold or best_ratio == 1.0:
            return best, best_ratio
        return None

    def analyze(
        self,
        ds_components: list[Component] | None,
        frontend_components: list[Component] | None,
        ds_imports: dict[str, list[str]] | None = None,
    ) -> list[Issue]:
        """
        Run the component checks.

        Args:
            ds_components: Design system components, usage already marked.
            frontend_components: Frontend components.
            ds_imports: Frontend file -> design system component names it
                imports. A frontend component whose file imports a design
                system component of the same canonical name is a wrapper,
                not a duplicate.

        Returns:
            Duplicate, unused and props-verification issues. Empty when
            either component set is missing.
        """
        if not ds_components or frontend_components is None:
            logger.debug("Component analysis skipped: missing component set")
            return []

        ds_imports = ds_imports or {}
        issues = []
        claimed: set[tuple[str, str]] = set()

        for component in frontend_components:
            imported = {canonical_name(n) for n in ds_imports.get(component.file, [])}
            if canonical_name(component.name) in imported:
                continue
            match = self.best_match(component, ds_components)
            if match is None:
                continue
            twin, ratio = match
            if twin.used:
                continue
            claimed.add((twin.file, twin.name))
            issues.append(self._issue(
                IssueType.DUPLICATE_COMPONENT,
                f'Frontend component "{component.name}" duplicates design system component "{twin.name}"',
                source_refs=(SourceRef(component.file, component.line), SourceRef(twin.file, twin.line)),
                component=component.name,
                suggestions=(
                    f"Use {twin.name} from the design system",
                    "Remove the duplicated frontend component",
                    "Check whether a functional difference justifies the duplicate",
                ),
                details={
                    "similarity": round(ratio, 3),
                    "design_system_component": twin.name,
                    "design_system_file": twin.file,
                    "category": twin.category.value,
                },
            ))

        for component in ds_components:
            if component.used or (component.file, component.name) in claimed:
                continue
            issues.append(self._issue(
                IssueType.UNUSED_DS_COMPONENT,
                f'Design system component "{component.name}" is not used by the frontend',
                source_refs=(SourceRef(component.file, component.line),),
                component=component.name,
                suggestions=(
                    "Check whether the component is still needed",
                    "Document its use cases",
                    "Consider deprecating it",
                ),
                details={
                    "category": component.category.value,
                    "complexity": component.complexity,
                    "has_tests": component.has_tests,
                    "has_stories": component.has_stories,
                    "in_main_exports": component.in_main_exports,
                },
            ))

        if self.verify_props:
            issues.extend(self.verify_props_usage(ds_components))
        return issues

    def verify_props_usage(self, ds_components: list[Component]) -> list[Issue]:
        """One reminder per (used component, using file) when required props exist."""
        issues = []
        for component in ds_components:
            if not component.used:
                continue
            required = [
                p["name"] for p in component.props
                if not p.get("has_default") and p["name"] != "children"
            ]
            if not required:
                continue
            for file in component.used_in_files:
                issues.append(self._issue(
                    IssueType.VERIFY_PROPS_USAGE,
                    f'Check that {file} passes the required props of "{component.name}"',
                    source_refs=(SourceRef(file), SourceRef(component.file, component.line)),
                    component=component.name,
                    suggestions=(f"Required props: {', '.join(required)}",),
                    details={"required_props": required},
                ))
        return issues


def index_design_system_imports(
    imports: list[ImportRecord],
    matcher: Any,
) -> dict[str, list[str]]:
    """
    Frontend file -> names it imports from design system sources.

    Args:
        imports: Every frontend import record.
        matcher: A DesignSystemImportMatcher.
    """
    by_file: dict[str, list[str]] = defaultdict(list)
    for record in imports:
        for name in matcher.imported_components(record):
            if name not in by_file[record.file]:
                by_file[record.file].append(name)
    return dict(by_file)
