"""Production configuration guard — refuses unsafe settings at startup.

Runs once when a session is built from configuration and fails hard
(raises ``ProductionConfigError``) if any constraint is violated.
"""

from __future__ import annotations

import logging

from timeshards.config import TimeShardsConfig
from timeshards.errors import TimeShardsError

logger = logging.getLogger(__name__)


class ProductionConfigError(TimeShardsError):
    """Raised when production configuration constraints are violated.

    The session cannot safely start; the process should exit.
    """


def enforce_production_constraints(config: TimeShardsConfig) -> None:
    """Validate production-critical configuration.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. A remote proof authority must be configured; local signing keys are
       for development only.
    3. Receipts from that authority must be verifiable, so its public key
       must be configured.

    Raises
    ------
    ProductionConfigError
        If any constraint is violated. All violations are reported at once.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. Set TIMESHARDS_DEBUG=false."
        )
    if not config.proof_authority_url:
        violations.append(
            "A remote proof authority is required in production. "
            "Set TIMESHARDS_PROOF_AUTHORITY_URL."
        )
    if not config.authority_public_key:
        violations.append(
            "Receipt signatures must be verified in production. "
            "Set TIMESHARDS_AUTHORITY_PUBLIC_KEY."
        )

    if violations:
        msg = "Production configuration guard failed.\n" + "\n".join(
            f"  - {v}" for v in violations
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
