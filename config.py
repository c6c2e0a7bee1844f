"""
Runtime configuration

All settings come from the environment (a local .env file is loaded first).
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str) -> list:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Auth
JWT_SECRET = os.getenv("JWT_SECRET", "kartmart-dev-secret")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", 7))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Payments
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# CORS
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    FRONTEND_URL,
    *_env_list("CORS_ORIGINS"),
]
CORS_ORIGINS = list(dict.fromkeys(o for o in CORS_ORIGINS if o))

# Rate limiting
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 15 * 60))
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", 100))
AUTH_RATE_LIMIT_MAX = int(os.getenv("AUTH_RATE_LIMIT_MAX", 20))

# Checkout
TAX_RATE = float(os.getenv("TAX_RATE", 0.08))
SHIPPING_PRICE = float(os.getenv("SHIPPING_PRICE", 10.0))

# Chat
CHAT_AUTO_REPLY_DELAY = float(os.getenv("CHAT_AUTO_REPLY_DELAY", 2.0))
