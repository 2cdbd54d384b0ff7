"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and TIMESHARDS_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class TimeShardsConfig(BaseSettings):
    """Ledger configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export TIMESHARDS_STORE_PATH=/data/timeshards.db
        export TIMESHARDS_PROOF_AUTHORITY_URL=https://proof.example.org/api
        export TIMESHARDS_LOG_LEVEL=DEBUG

    Or via .env file::

        TIMESHARDS_ENVIRONMENT=production
        TIMESHARDS_AUTHORITY_PUBLIC_KEY=3b6a27bc...
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TIMESHARDS_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage paths
    store_path: Path = Path(".timeshards/ledger.db")
    export_dir: Path = Path(".")
    key_path: Path = Path(".timeshards/authority.key")

    # Proof authority. Without a URL, receipts are signed locally.
    proof_authority_url: str = ""
    proof_authority_timeout_seconds: float = 10.0
    authority_public_key: str = ""  # hex Ed25519 key receipts must verify against

    # Local authority seed (hex). Falls back to the key file at key_path.
    signing_key: str = ""

    # Persistence
    autosave_debounce_seconds: float = 0.4

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"
