"""
Per-file extractors for contract_audit.

Each extractor walks one parsed file and returns immutable record lists;
merging across files is left to the orchestrator.
"""

from contract_audit.scanners.components import ComponentExtractor
from contract_audit.scanners.controllers import ControllerIndex, extract_controller_symbols
from contract_audit.scanners.http_calls import CallSiteExtractor
from contract_audit.scanners.imports import DesignSystemImportMatcher, extract_exports, extract_imports
from contract_audit.scanners.routes import RouteExtractor

__all__ = [
    "CallSiteExtractor",
    "ComponentExtractor",
    "ControllerIndex",
    "DesignSystemImportMatcher",
    "RouteExtractor",
    "extract_controller_symbols",
    "extract_exports",
    "extract_imports",
]
