"""
Main audit orchestrator for contract_audit.

Coordinates source discovery, the cache, the syntax tree provider and the
extractors over the backend, frontend and design system roots, then runs
the analyzers over the merged record sets.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from contract_audit.analyzers import (
    ReconciliationEngine,
    SecurityPolicyEngine,
    SimilarityMatcher,
    build_summary,
    index_design_system_imports,
)
from contract_audit.cache import CacheStore
from contract_audit.config import PolicyConfig, merge_config
from contract_audit.models import (
    AuditResult,
    Diagnostic,
    FileExtraction,
    Issue,
    IssueType,
    Scope,
    SourceRef,
    severity_for,
)
from contract_audit.parsers import ParseFailure, ParserRegistry
from contract_audit.scanners import (
    CallSiteExtractor,
    ComponentExtractor,
    ControllerIndex,
    DesignSystemImportMatcher,
    RouteExtractor,
    extract_controller_symbols,
    extract_exports,
    extract_imports,
)
from contract_audit.scanners.components import has_stories, has_tests
from contract_audit.sources import SourceScanner
from contract_audit.utils import get_content_hash, read_source, truncate_string

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Bump when the shape of cached extraction payloads changes
ANALYSIS_SCHEMA_VERSION = 1

ROLE_ORDER = [Scope.BACKEND, Scope.FRONTEND, Scope.DESIGN_SYSTEM]

ROLE_FAILURE_ISSUES = {
    Scope.BACKEND: IssueType.BACKEND_ANALYSIS_FAILED,
    Scope.FRONTEND: IssueType.FRONTEND_ANALYSIS_FAILED,
    Scope.DESIGN_SYSTEM: IssueType.DESIGN_SYSTEM_ANALYSIS_FAILED,
}

MAIN_EXPORT_CANDIDATES = [
    f"{directory}index{ext}"
    for directory in ("", "src/")
    for ext in (".js", ".jsx", ".ts", ".tsx")
]


class AuditConfigError(ValueError):
    """Raised before any analysis when the run cannot start."""


def config_fingerprint(config: dict[str, Any]) -> str:
    """Hash of every config section that influences per-file extraction."""
    relevant = {
        "schema": ANALYSIS_SCHEMA_VERSION,
        "routes": config.get("routes"),
        "http_calls": config.get("http_calls"),
        "components": config.get("components"),
        "auth_header_names": config.get("policy", {}).get("auth_header_names"),
    }
    content = json.dumps(relevant, sort_keys=True, default=str)
    return hashlib.md5(content.encode("utf-8")).hexdigest()[:16]


class ContractAuditor:
    """
    Run one audit over up to three source roots.

    Extraction runs in a bounded thread pool, one task per file; analysis
    runs afterwards on the calling thread.
    """

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        cache: CacheStore | None = None,
    ) -> None:
        """
        Initialize the auditor.

        Args:
            config: Configuration dictionary (merged with defaults). Project
                roots come from ``projects.<role>.path``.
            cache: Cache to use; built from the ``cache`` config section
                when omitted.
        """
        self.config = merge_config(config)
        self.policy = PolicyConfig.from_config(self.config)
        self.fingerprint = config_fingerprint(self.config)
        self.cache = cache if cache is not None else CacheStore.from_config(self.config)
        self.workers = self.config.get("workers") or os.cpu_count() or 1

        self.route_extractor = RouteExtractor(self.config)
        self.call_extractor = CallSiteExtractor(self.config)
        self.component_extractor = ComponentExtractor(self.config)
        self.ds_import_matcher = DesignSystemImportMatcher(
            self.config["components"]["design_system_import_patterns"]
        )

        self._stats_lock = threading.Lock()
        self._cache_hits = 0

    # Setup

    def roots(self) -> dict[Scope, Path]:
        """
        Configured project roots, validated.

        Raises:
            AuditConfigError: If no root is configured or one is not a directory.
        """
        roots = {}
        for role in ROLE_ORDER:
            path = self.config["projects"].get(role.value, {}).get("path")
            if not path:
                continue
            root = Path(path).expanduser().resolve()
            if not root.is_dir():
                raise AuditConfigError(f"{role.value} root does not exist or is not a directory: {path}")
            roots[role] = root
        if not roots:
            raise AuditConfigError("No project root configured (backend, frontend or design system)")
        return roots

    def _scanner_for(self, role: Scope, root: Path) -> SourceScanner:
        project = self.config["projects"][role.value]
        return SourceScanner(
            root,
            extensions=project["extensions"],
            ignore=list(self.config.get("ignore", [])) + list(project.get("ignore", [])),
        )

    # Per-file pipeline

    def _extract(self, role: Scope, parsed: Any, rel_path: str, filepath: Path) -> FileExtraction:
        extraction = FileExtraction(file=rel_path, role=role)
        if role == Scope.BACKEND:
            extraction.endpoints = self.route_extractor.extract(parsed, rel_path)
            extraction.controllers = extract_controller_symbols(parsed, rel_path)
        elif role == Scope.FRONTEND:
            extraction.call_sites = self.call_extractor.extract(parsed, rel_path)
            extraction.components = self.component_extractor.extract(parsed, rel_path, role, filepath)
            extraction.imports = extract_imports(parsed, rel_path)
        else:
            extraction.components = self.component_extractor.extract(parsed, rel_path, role, filepath)
        return extraction

    def _content_key(self, content_hash: str, rel_path: str, role: Scope) -> str:
        return CacheStore.generate_key(content_hash, rel_path, role.value, self.fingerprint)

    def _cached_extraction(self, content_key: str) -> FileExtraction | None:
        payload = self.cache.get(content_key, "analysis")
        if not isinstance(payload, dict):
            return None
        if payload.get("schema") != ANALYSIS_SCHEMA_VERSION or payload.get("fingerprint") != self.fingerprint:
            return None
        try:
            return FileExtraction.from_dict(payload["extraction"])
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Ignoring unusable cached extraction %s: %s", content_key, e)
            self.cache.invalidate(content_key, "analysis")
            return None

    def process_file(self, role: Scope, scanner: SourceScanner, filepath: Path) -> FileExtraction:
        """
        Extract one file, consulting the cache first.

        ``raw`` maps (path, mtime, size) to the content hash, ``tree`` maps
        the content hash to the syntax mode that parsed it, ``analysis``
        maps the content hash to the extracted records.

        Returns:
            FileExtraction with records, or with a diagnostic when the file
            could not be read or parsed.
        """
        rel_path = scanner.relative(filepath)
        try:
            stat = filepath.stat()
            file_key = CacheStore.generate_file_key(filepath, stat)
            content = None
            content_hash = self.cache.get(file_key, "raw")
            if not isinstance(content_hash, str):
                content, _ = read_source(filepath)
                content_hash = get_content_hash(content)
                self.cache.set(file_key, content_hash, "raw", source=rel_path)

            content_key = self._content_key(content_hash, rel_path, role)
            cached = self._cached_extraction(content_key)
            if cached is not None:
                with self._stats_lock:
                    self._cache_hits += 1
                cached.from_cache = True
                for component in cached.components:
                    component.has_tests = has_tests(filepath)
                    component.has_stories = has_stories(filepath)
                return cached

            if content is None:
                content, _ = read_source(filepath)
        except OSError as e:
            logger.warning("Could not read %s: %s", rel_path, e)
            return FileExtraction(
                file=rel_path,
                role=role,
                diagnostic=Diagnostic(rel_path, role.value, "read_error", str(e)),
            )

        parser = ParserRegistry.get_parser(filepath, self.config)
        if parser is None:
            logger.debug("No parser for %s", rel_path)
            return FileExtraction(file=rel_path, role=role)

        tree_key = CacheStore.generate_key(content_hash, filepath.suffix.lower())
        tree_hint = self.cache.get(tree_key, "tree")
        preferred_mode = tree_hint.get("mode") if isinstance(tree_hint, dict) else None

        parsed = parser.parse(content, filepath, preferred_mode=preferred_mode)
        if isinstance(parsed, ParseFailure):
            logger.debug("Skipping %s: %s", rel_path, parsed.message)
            extraction = FileExtraction(
                file=rel_path,
                role=role,
                diagnostic=Diagnostic(
                    rel_path, role.value, "parse_error", truncate_string(parsed.message), parsed.line
                ),
            )
        else:
            if parsed.mode != preferred_mode:
                self.cache.set(tree_key, {"mode": parsed.mode}, "tree", source=rel_path)
            extraction = self._extract(role, parsed, rel_path, filepath)

        self.cache.set(
            content_key,
            {
                "schema": ANALYSIS_SCHEMA_VERSION,
                "fingerprint": self.fingerprint,
                "extraction": extraction.to_dict(),
            },
            "analysis",
            source=rel_path,
        )
        return extraction

    def extract_all(self, roots: dict[Scope, Path]) -> tuple[list[FileExtraction], dict[str, int], list[Issue]]:
        """
        Extract every file under every root in parallel.

        Returns:
            (extractions sorted by role and path, files per role, role failure issues)
        """
        tasks: list[tuple[Scope, SourceScanner, Path]] = []
        files_scanned: dict[str, int] = {}
        failures: list[Issue] = []
        for role, root in roots.items():
            scanner = self._scanner_for(role, root)
            try:
                files = scanner.scan()
            except OSError as e:
                failures.append(self._role_failure(role, root, str(e)))
                continue
            files_scanned[role.value] = len(files)
            tasks.extend((role, scanner, path) for path in files)

        extractions: list[FileExtraction] = []
        executor = ThreadPoolExecutor(max_workers=self.workers)
        try:
            futures = {
                executor.submit(self.process_file, role, scanner, path): (role, scanner.relative(path))
                for role, scanner, path in tasks
            }
            for future in as_completed(futures):
                role, rel_path = futures[future]
                try:
                    extractions.append(future.result())
                except Exception as e:
                    logger.error("Error extracting %s: %s", rel_path, e)
                    extractions.append(FileExtraction(
                        file=rel_path,
                        role=role,
                        diagnostic=Diagnostic(
                            rel_path, role.value, "extraction_error", truncate_string(f"{type(e).__name__}: {e}")
                        ),
                    ))
        except KeyboardInterrupt:
            logger.warning("Interrupted, cancelling pending extraction")
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

        extractions.sort(key=lambda x: (ROLE_ORDER.index(x.role), x.file))

        for role, root in roots.items():
            attempted = [x for x in extractions if x.role == role]
            if attempted and all(not x.ok for x in attempted):
                failures.append(self._role_failure(role, root, f"all {len(attempted)} files failed to parse"))
        return extractions, files_scanned, failures

    def _role_failure(self, role: Scope, root: Path, reason: str) -> Issue:
        issue_type = ROLE_FAILURE_ISSUES[role]
        return Issue(
            type=issue_type,
            severity=severity_for(issue_type, self.policy.severity_map),
            message=f"Analysis of the {role.value} root failed: {reason}",
            source_refs=(SourceRef(str(root)),),
            suggestions=("Check the root path and the file diagnostics",),
            details={"root": str(root), "reason": reason},
        )

    # Post-extraction

    def main_export_names(self, ds_root: Path) -> set[str]:
        """Names exported from the design system's ``index`` entry point."""
        for candidate in MAIN_EXPORT_CANDIDATES:
            filepath = ds_root / candidate
            if not filepath.is_file():
                continue
            parser = ParserRegistry.get_parser(filepath, self.config)
            if parser is None:
                continue
            try:
                content, _ = read_source(filepath)
            except OSError as e:
                logger.warning("Could not read %s: %s", filepath, e)
                continue
            parsed = parser.parse(content, filepath)
            if isinstance(parsed, ParseFailure):
                logger.info("Could not parse %s: %s", filepath, parsed.message)
                continue
            exports = extract_exports(parsed)
            names = set(exports.named) | set(exports.reexports)
            if exports.default:
                names.add(exports.default)
            return names
        return set()

    def mark_design_system_usage(self, ds_components: list, imports: list) -> None:
        """Mark design system components imported by frontend files as used."""
        by_name: dict[str, list] = {}
        for component in ds_components:
            by_name.setdefault(component.name, []).append(component)
        for record in imports:
            for name in self.ds_import_matcher.imported_components(record):
                for component in by_name.get(name, []):
                    component.mark_used(record.file)

    def run(self) -> AuditResult:
        """
        Run the full audit.

        Returns:
            AuditResult with records, issues, diagnostics and summary.

        Raises:
            AuditConfigError: If the configured roots are unusable.
        """
        roots = self.roots()
        logger.info("Auditing %s", ", ".join(f"{r.value}={p}" for r, p in roots.items()))

        if self.cache.enabled:
            self.cache.clear_expired()

        extractions, files_scanned, failures = self.extract_all(roots)

        result = AuditResult()
        imports = []
        controllers = []
        for extraction in extractions:
            if extraction.diagnostic is not None:
                result.diagnostics.append(extraction.diagnostic)
                continue
            result.endpoints.extend(extraction.endpoints)
            result.call_sites.extend(extraction.call_sites)
            result.components.extend(extraction.components)
            imports.extend(extraction.imports)
            controllers.extend(extraction.controllers)

        ControllerIndex(controllers).link(result.endpoints)

        ds_components = result.design_system_components
        if Scope.DESIGN_SYSTEM in roots:
            main_exports = self.main_export_names(roots[Scope.DESIGN_SYSTEM])
            for component in ds_components:
                component.in_main_exports = component.name in main_exports
            self.mark_design_system_usage(ds_components, imports)

        result.issues.extend(failures)

        primary_endpoints = None
        matches = []
        if Scope.BACKEND in roots and Scope.FRONTEND in roots:
            reconciliation = ReconciliationEngine(self.policy).reconcile(result.endpoints, result.call_sites)
            result.issues.extend(reconciliation.issues)
            primary_endpoints = reconciliation.primary_endpoints
            matches = reconciliation.matches
        elif Scope.BACKEND in roots:
            declarations = ReconciliationEngine(self.policy).index(result.endpoints)
            primary_endpoints = [declared[-1] for declared in declarations.values()]
            logger.info("No frontend root: skipping endpoint reconciliation")

        if Scope.BACKEND in roots:
            security = SecurityPolicyEngine(self.policy)
            result.issues.extend(security.evaluate(primary_endpoints or [], matches))

        if Scope.DESIGN_SYSTEM in roots and Scope.FRONTEND in roots:
            matcher = SimilarityMatcher(self.config, self.policy.severity_map)
            result.issues.extend(matcher.analyze(
                ds_components,
                result.frontend_components,
                index_design_system_imports(imports, self.ds_import_matcher),
            ))
        else:
            logger.info("Design system or frontend root missing: skipping component analysis")

        result.summary = build_summary(
            result,
            primary_endpoints=primary_endpoints,
            files_scanned=files_scanned,
            cache_hits=self._cache_hits,
        )
        logger.info(
            "Audit finished: %d endpoints, %d call sites, %d components, %d issues",
            len(result.endpoints),
            len(result.call_sites),
            len(result.components),
            len(result.issues),
        )
        return result
