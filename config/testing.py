import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hr_record_store_test"),
}

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///hr_record_store_test.db")

SQL_ECHO = False
LOG_LEVEL = "WARNING"
TESTING = True

QUERY_TIMEOUT_SECONDS = 5.0
WRITE_RETRY_ATTEMPTS = 3
WRITE_RETRY_BACKOFF_SECONDS = 0.01

LEAVE_BALANCE_DEFAULTS = {"casual": 12, "sick": 10, "annual": 15, "unpaid": 0}
PROBATION_PERIOD_MONTHS = 3
PROVIDENT_FUND_DEFAULT = "0"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
