import logging
import time
from contextlib import contextmanager

logger = logging.getLogger("nanocore.sql")


@contextmanager
def query_logging(model_or_db):
    """
    Context manager that logs every statement executed inside its block.
    Accepts either an ActiveRecord (with .db) or a Database instance and
    yields the list of ``(sql, params)`` pairs seen so far.

        with query_logging(user) as statements:
            user.find_by_id(1)
        assert len(statements) == 1
    """
    db = getattr(model_or_db, "db", model_or_db)  # support model or db
    original_execute = db.execute
    statements = []

    # Database.query routes through execute, so one wrapper sees everything.
    def logged_execute(sql, params=None):
        if not isinstance(sql, str):
            sql, params = sql.get()
        statements.append((sql, params))
        start = time.perf_counter()
        result = original_execute(sql, params)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("[SQL] %s\n[Params] %s\n[Took] %.2f ms", sql, params, elapsed)
        return result

    db.execute = logged_execute
    try:
        yield statements
    finally:
        db.execute = original_execute
