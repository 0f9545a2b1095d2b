import os
import threading
from datetime import datetime

from futures_bot.database.base_database import BaseMySQLRepo

LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


class Logger:
    """
    Simple logger: prints to console in development, saves to the `logs` table in production.
    Messages below LOG_LEVEL are dropped.
    """

    def __init__(self, env: str = None, min_level: str = None):
        self.env = env or os.getenv("ENVIRONMENT", "development")
        self.min_level = LEVELS.get((min_level or os.getenv("LOG_LEVEL", "INFO")).upper(), 20)
        self._print_lock = threading.Lock()
        self._repo = None
        if self.env != "development":
            self._repo = _LogRepo()

    def log(self, message: str, level: str = "INFO"):
        level = level.upper()
        if LEVELS.get(level, 20) < self.min_level:
            return
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if self._repo is None:
            with self._print_lock:
                print(f"[{ts}] [{level}] {message}")
            return
        try:
            self._repo.insert(ts, level, message)
        except Exception as e:
            # fall back to stdout when the insert fails
            with self._print_lock:
                print(f"[{ts}] [{level}] {message} (log insert failed: {e})")


class _LogRepo(BaseMySQLRepo):
    """
    Backing table for production logs.
    """

    def __init__(self):
        super().__init__()
        self._ensure_table()

    def _ensure_table(self):
        with self._cursor(commit=True) as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    `id` INT AUTO_INCREMENT PRIMARY KEY,
                    `timestamp` VARCHAR(19) NOT NULL,
                    `level` VARCHAR(10) NOT NULL,
                    `message` TEXT
                )
                """
            )

    def insert(self, ts: str, level: str, message: str):
        with self._cursor(commit=True) as cursor:
            cursor.execute("INSERT INTO logs (timestamp, level, message) VALUES (%s, %s, %s)", (ts, level, message))
