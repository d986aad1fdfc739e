"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with HIVEMIND_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: Services never import `settings` directly. The app factory builds a
Runtime from a Settings instance and hands each service what it needs, so
tests can construct isolated Settings per test case.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via HIVEMIND_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3001",
        "http://localhost:5173",
    ]

    # Auth
    api_keys: list[str] = []
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Storage: "json" (one file per document), "sqlite", or "memory"
    storage_backend: str = "json"
    data_dir: str = "data"
    sqlite_url: str = "sqlite:///data/hivemind.db"

    # Redis (optional: task event mirror + rate limiting)
    redis_url: str = "redis://localhost:6379/0"

    # Rate limiting
    rate_limit_rpm: int = 60  # requests per minute per IP
    rate_limit_dispatch_rpm: int = 20  # dispatch + paid invoke, per IP

    # Payments (x402)
    enforce_payments: bool = False
    fail_on_settlement_error: bool = False
    fee_currency: str = "USDC"
    fee_network: str = "solana"
    treasury_wallet_evm: str = "0x676fF3d546932dE6558a267887E58e39f405B135"
    treasury_wallet_solana: str = "5xUugg8ysgqpcGneM6qpM2AZ8ZGuMaH5TnGNWdCQC1Z1"
    base_usdc_asset: str = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
    solana_usdc_mint: str = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
    specialist_wallets: dict[str, str] = {}
    fee_overrides: dict[str, float] = {}

    # Replay protection
    min_signature_length: int = 20
    signature_retention_max: int = 10_000
    signature_retention_keep: int = 5_000
    signature_prune_interval_seconds: float = 3600.0

    # AgentWallet (custodial settlement provider)
    agentwallet_api_url: str = "https://agentwallet.mcpay.tech/api"
    agentwallet_username: str = "claw"
    agentwallet_token: str = ""
    settlement_timeout_seconds: float = 60.0

    # Scheduling
    dispatch_delay_seconds: float = 0.1  # lets observers subscribe first
    execution_warmup_seconds: float = 0.5
    specialist_delay_seconds: float = 0.8
    hop_delay_seconds: float = 1.2
    callback_timeout_seconds: float = 10.0

    model_config = {"env_prefix": "HIVEMIND_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "HIVEMIND_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if self.signature_retention_keep > self.signature_retention_max:
            raise ValueError(
                "signature_retention_keep must not exceed signature_retention_max"
            )
        return self


# Process-wide instance for entry points (uvicorn, CLI)
settings = Settings()
