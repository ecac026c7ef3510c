"""
Pytest configuration for brokex-cli tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Add cross-package imports
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["brokex-core", "brokex-chain", "brokex-api"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("BROKEX_ENVIRONMENT", "dev")
os.environ.setdefault("BROKEX_CHAIN_MODE", "simulated")
