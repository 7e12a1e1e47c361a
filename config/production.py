import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hr_record_store"),
}

DATABASE_URL = os.getenv("DATABASE_URL") or None

SQL_ECHO = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

QUERY_TIMEOUT_SECONDS = float(os.getenv("QUERY_TIMEOUT_SECONDS", "30"))
WRITE_RETRY_ATTEMPTS = int(os.getenv("WRITE_RETRY_ATTEMPTS", "5"))
WRITE_RETRY_BACKOFF_SECONDS = float(os.getenv("WRITE_RETRY_BACKOFF_SECONDS", "0.1"))

LEAVE_BALANCE_DEFAULTS = {"casual": 12, "sick": 10, "annual": 15, "unpaid": 0}
PROBATION_PERIOD_MONTHS = int(os.getenv("PROBATION_PERIOD_MONTHS", "3"))
PROVIDENT_FUND_DEFAULT = os.getenv("PROVIDENT_FUND_DEFAULT", "0")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
