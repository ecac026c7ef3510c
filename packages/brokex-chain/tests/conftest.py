"""
Pytest configuration for brokex-chain tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Add cross-package imports
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["brokex-core"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("BROKEX_ENVIRONMENT", "dev")
os.environ.setdefault("BROKEX_CHAIN_MODE", "simulated")


@pytest.fixture
def sample_contract_address():
    """Valid contract address for testing."""
    return "0x1234567890123456789012345678901234567890"


@pytest.fixture
def sample_private_key():
    """Throwaway signing key for testing."""
    return "0x" + "4c" * 32


@pytest.fixture
def sample_tx_hash():
    """Valid transaction hash for testing."""
    return "0x" + "a" * 64
