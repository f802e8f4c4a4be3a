# config.py
import os
import json
import logging

log = logging.getLogger("greencity")


def _bool_env(name: str, default: bool = False) -> bool:
    v = (os.getenv(name, "").strip().lower())
    if not v:
        return default
    return v in ("1", "true", "yes", "y", "t")


def _env_list(name: str) -> list:
    raw = os.getenv(name, "")
    return [e.strip() for e in raw.split(",") if e.strip()]


# --- Storage -----------------------------------------------------------------
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").strip().lower()   # sql | memory
STORE_WARMUP_TRIES = int(os.getenv("STORE_WARMUP_TRIES", "5"))
STORE_WARMUP_DELAY = float(os.getenv("STORE_WARMUP_DELAY", "1.0"))

# --- Auth --------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-prod")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MIN = int(os.getenv("ACCESS_TOKEN_EXPIRE_MIN", "1440"))  # 24h
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
PASSWORD_MIN_LEN = 8
RESET_CODE_TTL_MIN = int(os.getenv("RESET_CODE_TTL_MIN", "10"))
RESET_CODE_MAX_ATTEMPTS = 5

# Admins are never created through the API.
# Example: [{"id":"admin1","name":"Ward Office","mobile":"9000000001","password":"..."}]
DEFAULT_ADMINS = [
    {"id": "admin1", "name": "Ward Administrator", "mobile": "9000000001", "password": "admin-pass-1"},
]


def load_admins() -> list:
    raw = os.getenv("ADMINS_JSON", "").strip()
    if raw:
        try:
            data = json.loads(raw)
            if isinstance(data, list):
                return data
        except Exception as e:
            log.warning("Invalid ADMINS_JSON, using defaults. %s", e)
    return list(DEFAULT_ADMINS)


# --- Billing -----------------------------------------------------------------
CURRENCY = os.getenv("CURRENCY", "INR").upper()
UPI_PAYEE_ID = os.getenv("UPI_PAYEE_ID", "greencity@upi")
UPI_PAYEE_NAME = os.getenv("UPI_PAYEE_NAME", "Green City Connect")
QR_API_URL = os.getenv("QR_API_URL", "https://api.qrserver.com/v1/create-qr-code/")

MIXED_WASTE_FINE = float(os.getenv("MIXED_WASTE_FINE", "100"))
MIXED_STREAK_LIMIT = 3
SPECIAL_PICKUP_FEE = float(os.getenv("SPECIAL_PICKUP_FEE", "150"))
DEFAULT_PLAN_ID = os.getenv("DEFAULT_PLAN_ID", "plan_basic")

DEFAULT_PLANS = [
    {"id": "plan_basic", "name": "Basic Household", "pricePerMonth": 75.00, "binSize": "Small (60L)", "frequency": "Weekly"},
    {"id": "plan_standard", "name": "Standard Family", "pricePerMonth": 120.00, "binSize": "Medium (120L)", "frequency": "Weekly"},
    {"id": "plan_large", "name": "Large Household", "pricePerMonth": 180.00, "binSize": "Large (240L)", "frequency": "Weekly"},
    {"id": "plan_biweekly", "name": "Bi-Weekly Saver", "pricePerMonth": 45.00, "binSize": "Small (60L)", "frequency": "Bi-Weekly"},
]

# admin = screenshot + admin approval; simulated = delayed coin flip (demo only)
PAYMENT_VERIFIER = os.getenv("PAYMENT_VERIFIER", "admin").strip().lower()
SIMULATED_SUCCESS_RATE = float(os.getenv("SIMULATED_SUCCESS_RATE", "0.8"))
SIMULATED_DELAY_SEC = float(os.getenv("SIMULATED_DELAY_SEC", "3"))

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(2 * 1024 * 1024)))

# --- Misc --------------------------------------------------------------------
SEED_DEMO_DATA = _bool_env("SEED_DEMO_DATA", False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
] + _env_list("ALLOWED_ORIGINS")

LANGUAGES = ("en", "bn", "hi")
THEMES = ("light", "dark")
