import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class Config:
    # --- Flask Core ---
    SECRET_KEY = os.getenv('SECRET_KEY', 'fallback-secret-key')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///rosca_ledger.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # --- JWT Authentication (Cookie-Based) ---
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret")

    # Dashboard uses cookies, API clients may send a Bearer header
    JWT_TOKEN_LOCATION = ["cookies", "headers"]

    # Cookies config
    JWT_COOKIE_SECURE = os.getenv("JWT_COOKIE_SECURE", "false").lower() == "true"
    JWT_ACCESS_COOKIE_PATH = "/"
    JWT_COOKIE_CSRF_PROTECT = os.getenv("JWT_COOKIE_CSRF_PROTECT", "false").lower() == "true"

    # Token expiry
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    # --- Ledger policy ---
    # DECLINING: weekly interest on the remaining balance plus late penalties
    # NONE: principal-only loans, collected principal redistributed as savings
    INTEREST_POLICY = os.getenv("INTEREST_POLICY", "DECLINING").upper()

    DEFAULT_WEEKLY_AMOUNT = float(os.getenv("DEFAULT_WEEKLY_AMOUNT", "100"))
    DEFAULT_LOAN_WEEKS = int(os.getenv("DEFAULT_LOAN_WEEKS", "10"))
    DEFAULT_INTEREST_RATE = float(os.getenv("DEFAULT_INTEREST_RATE", "1.0"))   # weekly %
    LATE_PENALTY_RATE = float(os.getenv("LATE_PENALTY_RATE", "0.5"))           # weekly % of balance

    # Group fund split used when a cycle has no group of its own
    FUND_RESERVE_PCT = float(os.getenv("FUND_RESERVE_PCT", "10"))
    FUND_INSURANCE_PCT = float(os.getenv("FUND_INSURANCE_PCT", "5"))
    FUND_ADMIN_FEE_PCT = float(os.getenv("FUND_ADMIN_FEE_PCT", "0.5"))

    # Full early repayment: % of principal and % of full-term interest
    PENALTY_LOAN_PCT = float(os.getenv("PENALTY_LOAN_PCT", "10"))
    PENALTY_INTEREST_PCT = float(os.getenv("PENALTY_INTEREST_PCT", "10"))

    # Only read by `flask bootstrap-admin`
    BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    JWT_COOKIE_CSRF_PROTECT = False
    INTEREST_POLICY = "DECLINING"
    LOG_LEVEL = "WARNING"
