import os

from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rent_manager.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW", "")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and (IS_DEV or IS_TEST):
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Session
SESSION_SECRET = os.getenv("SESSION_SECRET", "")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "rm_session").strip() or "rm_session"
SESSION_DURATION_SECONDS = int(os.getenv("SESSION_DURATION_SECONDS", "1800"))
SESSION_IDLE_TIMEOUT_SECONDS = int(os.getenv("SESSION_IDLE_TIMEOUT_SECONDS", str(SESSION_DURATION_SECONDS)))
SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", "0" if (IS_DEV or IS_TEST) else "1")
SESSION_COOKIE_HTTPONLY = _env_flag("SESSION_COOKIE_HTTPONLY", "1")
SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "strict").strip().lower()
if SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    SESSION_COOKIE_SAMESITE = "strict"
SESSION_COOKIE_DOMAIN = os.getenv("SESSION_COOKIE_DOMAIN", "").strip() or None

# Lockout
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "3"))
LOCKOUT_DURATION_MINUTES = int(os.getenv("LOCKOUT_DURATION_MINUTES", "60"))

# OTP
OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "2"))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
OTP_WINDOW_MINUTES = int(os.getenv("OTP_WINDOW_MINUTES", "5"))
OTP_RESEND_COOLDOWN_SECONDS = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "30"))

# Password reset / reactivation
PASSWORD_RESET_MAX_ATTEMPTS = int(os.getenv("PASSWORD_RESET_MAX_ATTEMPTS", "3"))
REACTIVATION_MAX_PER_DAY = int(os.getenv("REACTIVATION_MAX_PER_DAY", "2"))
REACTIVATION_COOLDOWN_HOURS = int(os.getenv("REACTIVATION_COOLDOWN_HOURS", "24"))

PASSWORD_BCRYPT_ROUNDS = int(os.getenv("PASSWORD_BCRYPT_ROUNDS", "12"))

# Per-IP rate limit on /api routes
CLIENT_RATE_LIMIT = int(os.getenv("CLIENT_RATE_LIMIT", "60"))
CLIENT_RATE_WINDOW_SECONDS = int(os.getenv("CLIENT_RATE_WINDOW_SECONDS", "60"))

# Email
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "mock" if (IS_DEV or IS_TEST) else "smtp").strip().lower()
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "465"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_SSL = _env_flag("SMTP_USE_SSL", "1")
SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "no-reply@rentmanager.com")
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "Rent Manager")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Startup admin bootstrap
DEV_ADMIN_EMAIL = os.getenv("DEV_ADMIN_EMAIL", "admin@rentmanager.com").strip()
DEV_ADMIN_PASSWORD = os.getenv("DEV_ADMIN_PASSWORD", "").strip()
DEV_ADMIN_FIRSTNAME = os.getenv("DEV_ADMIN_FIRSTNAME", "Super").strip() or "Super"
DEV_ADMIN_LASTNAME = os.getenv("DEV_ADMIN_LASTNAME", "Admin").strip()
DEV_ADMIN_SECRET_ANSWER = os.getenv("DEV_ADMIN_SECRET_ANSWER", "").strip()
RESET_ADMIN_PASSWORD = _env_flag("RESET_ADMIN_PASSWORD", "")
