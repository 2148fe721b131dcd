# config.py
import os
from datetime import timedelta


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "mysql+pymysql://root:@localhost/treino"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT config
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Public URL of the web app (checkout redirects, invite links)
    APP_URL = os.environ.get("APP_URL")

    # Stripe
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_ID = os.environ.get("STRIPE_PRICE_ID")

    # Hugging Face inference
    HF_API_TOKEN = os.environ.get("HF_API_TOKEN")
    HF_MODEL = os.environ.get("HF_MODEL", "mistralai/Mistral-7B-Instruct-v0.2")
    HF_API_URL = os.environ.get("HF_API_URL", "https://api-inference.huggingface.co/models")
    INFERENCE_TIMEOUT_SECONDS = _env_int("INFERENCE_TIMEOUT_SECONDS", 30)
    INFERENCE_MAX_RETRIES = _env_int("INFERENCE_MAX_RETRIES", 2)
    INFERENCE_BACKOFF_SECONDS = _env_int("INFERENCE_BACKOFF_SECONDS", 1)

    # Affiliate program / plans
    AFFILIATE_WEBHOOK_SECRET = os.environ.get("AFFILIATE_WEBHOOK_SECRET")
    AFFILIATE_BONUS_DAYS = _env_int("AFFILIATE_BONUS_DAYS", 30)
    FREE_TRIAL_DAYS = _env_int("FREE_TRIAL_DAYS", 14)

    # background ticker for workout timers (lazy advance otherwise)
    TIMER_TICKER_ENABLED = os.environ.get("TIMER_TICKER_ENABLED", "0") == "1"


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"

    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    STRIPE_PRICE_ID = "price_test_yearly"
    APP_URL = "http://localhost:3000"

    HF_API_TOKEN = "hf_test_token"
    HF_MODEL = "test/model"
    INFERENCE_BACKOFF_SECONDS = 0

    AFFILIATE_WEBHOOK_SECRET = "affiliate-hook-secret"
    TIMER_TICKER_ENABLED = False
