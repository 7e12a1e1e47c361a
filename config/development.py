import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hr_record_store"),
}

# Any SQLAlchemy URL; overrides DB_CONFIG when set (e.g. sqlite:///hr_dev.db)
DATABASE_URL = os.getenv("DATABASE_URL") or None

SQL_ECHO = bool(int(os.getenv("SQL_ECHO", "0")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

QUERY_TIMEOUT_SECONDS = float(os.getenv("QUERY_TIMEOUT_SECONDS", "30"))
WRITE_RETRY_ATTEMPTS = int(os.getenv("WRITE_RETRY_ATTEMPTS", "3"))
WRITE_RETRY_BACKOFF_SECONDS = float(os.getenv("WRITE_RETRY_BACKOFF_SECONDS", "0.05"))

# Applied to new employees that do not carry their own values
LEAVE_BALANCE_DEFAULTS = {"casual": 12, "sick": 10, "annual": 15, "unpaid": 0}
PROBATION_PERIOD_MONTHS = int(os.getenv("PROBATION_PERIOD_MONTHS", "3"))
PROVIDENT_FUND_DEFAULT = os.getenv("PROVIDENT_FUND_DEFAULT", "0")

# Create missing tables when example_usage.py starts
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
