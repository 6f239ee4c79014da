"""
Entry point for running contract_audit as a module.

Usage: python -m contract_audit [args]
"""

import sys

from contract_audit.cli import main

if __name__ == "__main__":
    sys.exit(main())
