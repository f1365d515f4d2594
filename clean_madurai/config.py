import os
from dataclasses import dataclass, field
from pathlib import Path

# Repo root is always the parent of the package directory.
repo_root = Path(__file__).resolve().parent.parent

# Local environment variables (do NOT commit secrets), e.g. GEMINI_API_KEY or ADMIN_PASSWORD in .env.
try:
    from dotenv import load_dotenv

    load_dotenv(repo_root / ".env", override=False)
except ImportError:
    pass


def _get_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _get_list(name: str, default: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in os.getenv(name, default).split(",") if v.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str = "Clean Madurai Backend"
    env: str = os.getenv("APP_ENV", os.getenv("ENV", "local"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_exp_minutes: int = int(os.getenv("JWT_EXP_MINUTES", "480"))

    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./clean_madurai.db")
    recreate_db_on_startup: bool = _get_bool("RECREATE_DB_ON_STARTUP", "false")

    # Seeded admin (self-registration only creates citizens and officers).
    seed_admin_on_startup: bool = _get_bool("SEED_ADMIN_ON_STARTUP", "true")
    admin_email: str = os.getenv("ADMIN_EMAIL", "admin@cleanmadurai.local")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "admin123")
    admin_name: str = os.getenv("ADMIN_NAME", "City Administrator")

    # Credential lockout after repeated failed sign-ins.
    auth_max_failed_attempts: int = int(os.getenv("AUTH_MAX_FAILED_ATTEMPTS", "5"))
    auth_lockout_minutes: int = int(os.getenv("AUTH_LOCKOUT_MINUTES", "5"))
    auth_min_password_length: int = int(os.getenv("AUTH_MIN_PASSWORD_LENGTH", "6"))

    # Blob storage (evidence photos, officer badges, profile photos).
    blob_dir: str = os.getenv("BLOB_DIR", str((repo_root / "data/blobs").resolve()))
    blob_base_url: str = os.getenv("BLOB_BASE_URL", "/api/blobs")
    blob_max_bytes: int = int(os.getenv("BLOB_MAX_BYTES", str(10 * 1024 * 1024)))

    # Complaint pre-verification: "keyword" (default) or "gemini".
    complaint_classifier: str = os.getenv("COMPLAINT_CLASSIFIER", "keyword")
    classifier_keywords: tuple[str, ...] = field(
        default_factory=lambda: _get_list("CLASSIFIER_KEYWORDS", "garbage,waste,sewage,drain")
    )

    # Gemini (only used when COMPLAINT_CLASSIFIER=gemini).
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model_primary: str = os.getenv("GEMINI_MODEL_PRIMARY", "gemini-2.0-flash")
    gemini_model_fallback: str = os.getenv("GEMINI_MODEL_FALLBACK", "gemini-2.0-flash-lite")
    gemini_temperature: float = float(os.getenv("GEMINI_TEMPERATURE", "0.0"))
    gemini_max_output_tokens: int = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "64"))
    gemini_timeout_s: int = int(os.getenv("GEMINI_TIMEOUT_S", "10"))
    # Attempts per model (includes the initial try).
    gemini_attempts_per_model: int = int(os.getenv("GEMINI_ATTEMPTS_PER_MODEL", "2"))
    gemini_endpoint: str = os.getenv(
        "GEMINI_ENDPOINT",
        "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
    )

    # Dashboards
    dashboard_poll_interval_s: float = float(os.getenv("DASHBOARD_POLL_INTERVAL_S", "15"))
    dashboard_latest_count: int = int(os.getenv("DASHBOARD_LATEST_COUNT", "8"))
    dashboard_stream_max_updates: int = int(os.getenv("DASHBOARD_STREAM_MAX_UPDATES", "20"))


settings = Settings()
