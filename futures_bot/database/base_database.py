# futures_bot/database/base_database.py
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from dotenv import load_dotenv
from mysql.connector import pooling

load_dotenv()


def db_config_from_env() -> Dict[str, Any]:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "user": os.getenv("DB_USER", "root"),
        "password": os.getenv("DB_PASSWORD", ""),
        "database": os.getenv("DB_NAME", "futures_bot"),
        "port": int(os.getenv("DB_PORT", 3306)),
    }


class BaseMySQLRepo:
    """
    Pooled MySQL connections configured from .env (DB_HOST, DB_USER, DB_PASSWORD, DB_NAME, DB_PORT, DB_POOL_SIZE).
    Every repo in the process shares one pool; the trade store and the log table draw from it concurrently.
    """

    _pool = None

    def __init__(self, **db_kwargs):
        self.config = db_config_from_env()
        # kwargs override (tests or dynamic config)
        self.config.update(db_kwargs)

        if BaseMySQLRepo._pool is None:
            BaseMySQLRepo._pool = pooling.MySQLConnectionPool(
                pool_name="futures_bot_pool",
                pool_size=int(os.getenv("DB_POOL_SIZE", 8)),
                pool_reset_session=True,
                **self.config,
            )

    def _get_conn(self):
        return BaseMySQLRepo._pool.get_connection()

    @contextmanager
    def _cursor(self, dictionary: bool = False, commit: bool = False) -> Iterator[Any]:
        """
        Borrow a connection, yield a cursor, commit on success when asked, always hand the connection back.
        """
        conn = self._get_conn()
        cursor = conn.cursor(dictionary=dictionary)
        try:
            yield cursor
            if commit:
                conn.commit()
        finally:
            cursor.close()
            conn.close()
