"""Adversarial tests for the production configuration guard.

Production mode must refuse settings that would let unverifiable receipts
or debug behaviour into a real ledger.
"""

from __future__ import annotations

import pytest

from timeshards.bridge.crypto_bridge import generate_keypair
from timeshards.config import TimeShardsConfig
from timeshards.core.production_guard import (
    ProductionConfigError,
    enforce_production_constraints,
)

_PUBLIC_KEY = generate_keypair()[1]

_PROD_AUTHORITY = {
    "proof_authority_url": "https://proof.example.org/api",
    "authority_public_key": _PUBLIC_KEY,
}


# ---------------------------------------------------------------------------
# Test: Production guard rejects debug mode
# ---------------------------------------------------------------------------


class TestProductionGuardDebugMode:
    def test_debug_true_in_production_raises(self):
        config = TimeShardsConfig(environment="production", debug=True, **_PROD_AUTHORITY)
        with pytest.raises(ProductionConfigError, match="debug=True"):
            enforce_production_constraints(config)

    def test_debug_false_in_production_passes(self):
        config = TimeShardsConfig(environment="production", **_PROD_AUTHORITY)
        enforce_production_constraints(config)

    def test_debug_true_in_development_allowed(self):
        enforce_production_constraints(TimeShardsConfig(debug=True))


# ---------------------------------------------------------------------------
# Test: Production guard requires a verifiable remote authority
# ---------------------------------------------------------------------------


class TestProductionGuardAuthority:
    def test_local_signing_rejected(self):
        config = TimeShardsConfig(environment="production", authority_public_key=_PUBLIC_KEY)
        with pytest.raises(ProductionConfigError, match="PROOF_AUTHORITY_URL"):
            enforce_production_constraints(config)

    def test_unverified_receipts_rejected(self):
        config = TimeShardsConfig(
            environment="production", proof_authority_url="https://proof.example.org"
        )
        with pytest.raises(ProductionConfigError, match="AUTHORITY_PUBLIC_KEY"):
            enforce_production_constraints(config)

    def test_all_violations_reported_together(self):
        config = TimeShardsConfig(environment="production", debug=True)
        with pytest.raises(ProductionConfigError) as excinfo:
            enforce_production_constraints(config)
        message = str(excinfo.value)
        assert message.count("  - ") == 3

    def test_environment_is_exact_match(self):
        # Only the literal "production" arms the guard.
        enforce_production_constraints(TimeShardsConfig(environment="Production"))
