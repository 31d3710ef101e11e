from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod
    HUBBER_DB_URL: str = "sqlite+aiosqlite:///./renthubber.db"

    # --- Minimal admin auth (API key) ---
    # Send: X-API-Key: <key>
    API_KEY: str | None = None

    # --- Platform fees (used until an admin saves a platform_fees row) ---
    DEFAULT_RENTER_FEE_PCT: float = 10.0
    DEFAULT_HUBBER_FEE_PCT: float = 10.0
    DEFAULT_SUPER_HUBBER_FEE_PCT: float = 5.0
    DEFAULT_FIXED_FEE_CENTS: int = 200

    # --- Wallet ---
    # Referral credit can cover at most this share of the renter commission
    REFERRAL_MAX_FEE_SHARE: float = 0.30
    REFERRAL_BONUS_CENTS: int = 500

    # --- Payouts ---
    MIN_PAYOUT_CENTS: int = 5000

    # --- Payment gateway (Stripe-compatible form API) ---
    PAYMENTS_API_KEY: str | None = None
    PAYMENTS_BASE_URL: str = "https://api.stripe.com/v1"
    PAYMENTS_CURRENCY: str = "eur"

    # --- Outbound HTTP resilience ---
    HTTP_TIMEOUT_S: float = 20.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_RATE_LIMIT_RPS: float = 5.0
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 5
    HTTP_CIRCUIT_RESET_S: float = 60.0

    # --- iCal ---
    PUBLIC_BASE_URL: str = "https://renthubber.com"
    ICAL_FETCH_TIMEOUT_S: float = 15.0

    # --- Invoices (commission invoices on checkout) ---
    INVOICE_VAT_RATE: float = 22.0
    INVOICE_RENTER_ON_CHECKOUT: bool = True
    INVOICE_HUBBER_ON_CHECKOUT: bool = True

    # --- Outbox ---
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 10
    OUTBOX_WEBHOOK_RPS: float = 2.0
    OUTBOX_BACKOFF_BASE_SECONDS: float = 5.0
    OUTBOX_BACKOFF_CAP_SECONDS: float = 3600.0  # 1 hour cap

    # --- Scheduler tuning ---
    SCHED_LIFECYCLE_INTERVAL_MINUTES: int = 15
    SCHED_OVERRIDES_INTERVAL_MINUTES: int = 60
    SCHED_CALENDAR_SYNC_INTERVAL_MINUTES: int = 180
    SCHED_DISPATCH_INTERVAL_MINUTES: int = 5


settings = Settings()
