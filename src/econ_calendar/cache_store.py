#!/usr/bin/env python3
"""
Cache store for canonical calendar events
One table keyed by the content-hash id, written only through upsert().
SQLite for single-host deployments and tests, PostgreSQL (psycopg2 pool) otherwise.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone

import psycopg2
from psycopg2 import extras, pool

from .config import describe_db_target
from .errors import CacheWriteError
from .models import STORE_COLUMNS, CanonicalEvent

logger = logging.getLogger(__name__)

TABLE = "cached_events"

# Columns overwritten when an id already exists; the rest are fixed by the id itself
UPDATABLE_COLUMNS = ("date", "event_timestamp", "actual", "forecast", "previous", "category", "fetched_at")


class CacheStore:
    """Backend-neutral upsert/range-query logic; subclasses supply the driver"""

    PARAM_STYLE = ":{name}"
    SCHEMA = ()

    def __init__(self, batch_size=100):
        self.batch_size = max(1, int(batch_size))

    # ===== BACKEND HOOKS =====

    def _execute(self, sql, params=None, fetch=None):
        """Run one statement; fetch is None, 'one' or 'all'. Returns rows or rowcount"""
        raise NotImplementedError

    def _execute_batch(self, sql, rows):
        """Run sql for every row in one transaction; raise on failure"""
        raise NotImplementedError

    def close(self):
        pass

    # ===== SQL HELPERS =====

    def _p(self, name):
        return self.PARAM_STYLE.format(name=name)

    def _in_clause(self, column, prefix, values, params):
        names = []
        for i, value in enumerate(values):
            key = f"{prefix}_{i}"
            params[key] = value
            names.append(self._p(key))
        return f"{column} IN ({', '.join(names)})"

    def _upsert_sql(self):
        columns = ", ".join(STORE_COLUMNS)
        values = ", ".join(self._p(c) for c in STORE_COLUMNS)
        updates = ",\n                ".join(f"{c} = excluded.{c}" for c in UPDATABLE_COLUMNS)
        return f"""
            INSERT INTO {TABLE} ({columns})
            VALUES ({values})
            ON CONFLICT (id) DO UPDATE SET
                {updates}
        """

    def create_schema(self):
        for statement in self.SCHEMA:
            self._execute(statement)

    # ===== WRITE PATH =====

    def upsert(self, events, fetched_at=None):
        """
        UPSERT events keyed by id.

        Duplicate ids inside the batch collapse to the last occurrence before
        writing. Rows are written in chunks of batch_size, each chunk in its own
        transaction; a failing chunk does not undo earlier ones.

        Args:
            events: iterable of CanonicalEvent
            fetched_at: write time stamped on every row (default: now, UTC)

        Returns:
            Number of rows written

        Raises:
            CacheWriteError: at least one chunk failed (raised after all chunks ran)
        """
        deduplicated = {}
        received = 0
        for event in events:
            received += 1
            deduplicated[event.id] = event
        if not deduplicated:
            return 0

        stamp = (fetched_at or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat()
        rows = []
        for event in deduplicated.values():
            row = event.to_row()
            row["fetched_at"] = stamp
            rows.append(row)

        sql = self._upsert_sql()
        written = 0
        failed = 0
        for offset in range(0, len(rows), self.batch_size):
            batch = rows[offset:offset + self.batch_size]
            try:
                self._execute_batch(sql, batch)
                written += len(batch)
            except (sqlite3.Error, psycopg2.Error) as e:
                failed += len(batch)
                logger.error(f"Upsert batch of {len(batch)} rows failed at offset {offset}: {e}")

        logger.info(f"UPSERTED {written} events ({len(rows)} unique ids from {received} received)")

        if failed:
            raise CacheWriteError(
                f"{failed} of {len(rows)} rows failed to upsert",
                failed_rows=failed,
                total_rows=len(rows),
            )
        return written

    def prune_older_than(self, days, today=None):
        """Delete rows whose date precedes today - days. Returns rows deleted"""
        today = today or datetime.now(timezone.utc).date()
        cutoff = (today - timedelta(days=days)).isoformat()
        deleted = self._execute(
            f"DELETE FROM {TABLE} WHERE date < {self._p('cutoff')}",
            {"cutoff": cutoff},
        )
        logger.info(f"Pruned {deleted} events dated before {cutoff}")
        return deleted

    def clear(self):
        deleted = self._execute(f"DELETE FROM {TABLE}")
        logger.warning(f"Cache cleared ({deleted} events removed)")
        return deleted

    # ===== READ PATH =====

    def query(self, start_date=None, end_date=None, start_utc=None, end_utc=None,
              countries=None, impacts=None):
        """
        Events in a range, ordered by event_timestamp.

        Local date strings win when both are given; UTC instants are only used
        when the date strings are absent.
        """
        conditions = []
        params = {}

        if start_date and end_date:
            conditions.append(f"date >= {self._p('start_date')}")
            conditions.append(f"date <= {self._p('end_date')}")
            params.update(start_date=start_date, end_date=end_date)
        elif start_utc and end_utc:
            conditions.append(f"event_timestamp >= {self._p('start_utc')}")
            conditions.append(f"event_timestamp <= {self._p('end_utc')}")
            params.update(
                start_utc=start_utc.astimezone(timezone.utc).isoformat(),
                end_utc=end_utc.astimezone(timezone.utc).isoformat(),
            )

        if countries:
            conditions.append(self._in_clause("country", "country", list(countries), params))
        if impacts:
            conditions.append(self._in_clause("impact", "impact", [str(getattr(i, 'value', i)) for i in impacts], params))

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self._execute(
            f"SELECT {', '.join(STORE_COLUMNS)} FROM {TABLE} {where} ORDER BY event_timestamp, id",
            params,
            fetch='all',
        )
        return [CanonicalEvent.from_row(row) for row in rows]

    def get(self, event_id):
        row = self._execute(
            f"SELECT {', '.join(STORE_COLUMNS)} FROM {TABLE} WHERE id = {self._p('id')}",
            {"id": event_id},
            fetch='one',
        )
        return CanonicalEvent.from_row(row) if row else None

    def latest_date(self):
        """Maximum event date, or None when the cache has never been populated"""
        row = self._execute(f"SELECT MAX(date) AS max_date FROM {TABLE}", fetch='one')
        value = row["max_date"] if row else None
        if isinstance(value, date):
            return value.isoformat()
        return value or None

    def latest_fetched_at(self):
        row = self._execute(f"SELECT MAX(fetched_at) AS last_fetch FROM {TABLE}", fetch='one')
        value = row["last_fetch"] if row else None
        if not value:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    def count(self):
        row = self._execute(f"SELECT COUNT(*) AS count FROM {TABLE}", fetch='one')
        return row["count"] if row else 0


class SQLiteCacheStore(CacheStore):
    """SQLite-backed cache; one shared connection guarded by a lock"""

    PARAM_STYLE = ":{name}"
    SCHEMA = (
        f"""
        CREATE TABLE IF NOT EXISTS {TABLE} (
            id TEXT PRIMARY KEY,
            event_timestamp TEXT NOT NULL,
            date TEXT NOT NULL,
            time TEXT NOT NULL,
            country TEXT NOT NULL,
            country_name TEXT NOT NULL,
            event TEXT NOT NULL,
            event_original TEXT NOT NULL,
            impact TEXT NOT NULL,
            actual TEXT,
            forecast TEXT,
            previous TEXT,
            category TEXT,
            fetched_at TEXT NOT NULL
        )
        """,
        f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_date_country_impact ON {TABLE} (date, country, impact)",
        f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_event_timestamp ON {TABLE} (event_timestamp)",
    )

    def __init__(self, path=":memory:", batch_size=100):
        super().__init__(batch_size)
        self.path = path
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.create_schema()
        logger.info(f"SQLite cache ready: {path}")

    def _execute(self, sql, params=None, fetch=None):
        with self._lock:
            cursor = self.conn.execute(sql, params or {})
            try:
                if fetch == 'one':
                    row = cursor.fetchone()
                    return dict(row) if row else None
                if fetch == 'all':
                    return [dict(row) for row in cursor.fetchall()]
                self.conn.commit()
                return cursor.rowcount
            finally:
                cursor.close()

    def _execute_batch(self, sql, rows):
        with self._lock:
            try:
                self.conn.executemany(sql, rows)
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise

    def close(self):
        with self._lock:
            self.conn.close()


class PostgresCacheStore(CacheStore):
    """PostgreSQL cache with connection pooling"""

    PARAM_STYLE = "%({name})s"
    SCHEMA = (
        f"""
        CREATE TABLE IF NOT EXISTS {TABLE} (
            id VARCHAR(64) PRIMARY KEY,
            event_timestamp TIMESTAMPTZ NOT NULL,
            date VARCHAR(10) NOT NULL,
            time VARCHAR(8) NOT NULL,
            country VARCHAR(8) NOT NULL,
            country_name TEXT NOT NULL,
            event TEXT NOT NULL,
            event_original TEXT NOT NULL,
            impact VARCHAR(8) NOT NULL,
            actual TEXT,
            forecast TEXT,
            previous TEXT,
            category TEXT,
            fetched_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
        f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_date_country_impact ON {TABLE} (date, country, impact)",
        f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_event_timestamp ON {TABLE} (event_timestamp)",
    )

    def __init__(self, host, port, database, user, password, pool_size=5, batch_size=100):
        super().__init__(batch_size)
        try:
            self.pool = pool.ThreadedConnectionPool(
                1, pool_size,
                host=host,
                port=port,
                database=database,
                user=user,
                password=password
            )
            logger.info(
                f"Database connection pool created: "
                f"{describe_db_target(host, port, database, user)}"
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to create connection pool: {e}")
            raise
        self.create_schema()

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool"""
        conn = self.pool.getconn()
        try:
            yield conn
        finally:
            self.pool.putconn(conn)

    def _execute(self, sql, params=None, fetch=None):
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cursor:
                    cursor.execute(sql, params or {})
                    if fetch == 'one':
                        row = cursor.fetchone()
                        result = dict(row) if row else None
                    elif fetch == 'all':
                        result = [dict(row) for row in cursor.fetchall()]
                    else:
                        result = cursor.rowcount
                conn.commit()
                return result
            except psycopg2.Error:
                conn.rollback()
                raise

    def _execute_batch(self, sql, rows):
        with self.get_connection() as conn:
            try:
                with conn.cursor() as cursor:
                    extras.execute_batch(cursor, sql, rows, page_size=len(rows))
                conn.commit()
            except psycopg2.Error:
                conn.rollback()
                raise

    def close(self):
        """Close all connections in the pool"""
        self.pool.closeall()
        logger.info("All database connections closed")


def get_cache_store(config):
    """Factory: build the configured cache backend"""
    if config.CACHE_BACKEND == 'postgres':
        return PostgresCacheStore(batch_size=config.UPSERT_BATCH_SIZE, **config.get_db_config())
    return SQLiteCacheStore(config.SQLITE_PATH, batch_size=config.UPSERT_BATCH_SIZE)
