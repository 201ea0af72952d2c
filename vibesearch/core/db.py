"""Database helpers for the search worker."""

import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from psycopg2 import extras, pool

from vibesearch.core.config import get_settings
from vibesearch.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 10

_connection_pool: Optional[pool.ThreadedConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = DEFAULT_MAX_CONNECTIONS) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool.

    The pool is shared by the request executor threads, so it must be the
    thread-safe variant and hold at least one connection per worker.
    """
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigurationError(["DATABASE_URL"], "DATABASE_URL is required for database connections")
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def to_vector_literal(embedding: Sequence[float]) -> str:
    """Render an embedding in pgvector's text input format."""
    return "[" + ",".join(repr(float(value)) for value in embedding) + "]"


_MATCH_OFFERINGS = """
SELECT id, business_id, similarity
FROM search_offerings_by_vibe(%(embedding)s::vector, %(threshold)s, %(count)s)
"""

_FETCH_OFFERINGS = """
SELECT
    o.id,
    o.business_id,
    o.title,
    o.description,
    o.tags,
    o.price_cents,
    o.currency,
    o.service_type,
    b.name AS business_name,
    b.address,
    b.location,
    b.category,
    b.short_description,
    b.image_url AS business_image_url,
    b.hours,
    b.phone_number,
    b.website_url,
    b.is_verified,
    b.latitude,
    b.longitude,
    b.thumbs_up,
    b.thumbs_down,
    b.sentiment_score,
    (
        SELECT oi.url
        FROM offering_images oi
        WHERE oi.offering_id = o.id AND oi.approved
        ORDER BY oi.is_primary DESC, oi.created_at DESC
        LIMIT 1
    ) AS offering_image_url
FROM offerings o
JOIN businesses b ON b.id = o.business_id
WHERE o.id = ANY(%(ids)s::uuid[]) AND o.status = 'active'
"""

_FETCH_REVIEWS = """
SELECT business_id, review_text, rating, image_urls, created_at
FROM user_reviews
WHERE business_id = ANY(%(ids)s::uuid[]) AND status = 'approved'
ORDER BY created_at DESC
"""

_SET_STATEMENT_TIMEOUT = "SET LOCAL statement_timeout = %s"

_FETCH_OFFERINGS_FOR_EMBEDDING = """
SELECT
    o.id,
    o.title,
    o.description,
    o.tags,
    o.service_type,
    b.name AS business_name,
    b.category,
    b.location,
    b.description AS business_description,
    b.tags AS business_tags
FROM offerings o
JOIN businesses b ON b.id = o.business_id
WHERE o.status = 'active'
"""

_UPSERT_OFFERING_EMBEDDING = """
INSERT INTO offerings_embeddings (offering_id, embedding, updated_at)
VALUES (%(offering_id)s, %(embedding)s::vector, NOW())
ON CONFLICT (offering_id) DO UPDATE SET
    embedding = EXCLUDED.embedding,
    updated_at = NOW();
"""


def _fetch_all(sql: str, params: Dict[str, Any], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            if timeout is not None:
                # Scoped to the current transaction; the pool rolls it back on putconn.
                cur.execute(_SET_STATEMENT_TIMEOUT, (max(1, int(timeout * 1000)),))
            cur.execute(sql, params)
            rows = cur.fetchall()
    return [dict(row) for row in rows]


def match_offerings(
    embedding: Sequence[float], match_threshold: float, match_count: int, timeout: Optional[float] = None
) -> List[Dict[str, Any]]:
    """Run the pgvector similarity search for offerings."""
    params = {"embedding": to_vector_literal(embedding), "threshold": match_threshold, "count": match_count}
    rows = _fetch_all(_MATCH_OFFERINGS, params, timeout)
    logger.debug("search_offerings_by_vibe returned %d rows", len(rows))
    return rows


def fetch_offerings(offering_ids: Sequence[str], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
    """Hydrate a list of offering ids with business attributes in one query."""
    if not offering_ids:
        return []
    return _fetch_all(_FETCH_OFFERINGS, {"ids": [str(value) for value in offering_ids]}, timeout)


def fetch_reviews(business_ids: Sequence[str], timeout: Optional[float] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Load approved reviews for many businesses at once, grouped by business id."""
    grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    if not business_ids:
        return grouped
    rows = _fetch_all(_FETCH_REVIEWS, {"ids": sorted({str(value) for value in business_ids})}, timeout)
    for row in rows:
        grouped[str(row["business_id"])].append(row)
    return grouped


def fetch_offerings_for_embedding(
    *, offering_id: Optional[str] = None, limit: int = 10, force: bool = False
) -> List[Dict[str, Any]]:
    """Select active offerings to (re)embed."""
    sql = _FETCH_OFFERINGS_FOR_EMBEDDING
    params: Dict[str, Any] = {"limit": limit}
    if offering_id:
        sql += " AND o.id = %(offering_id)s"
        params["offering_id"] = offering_id
    elif not force:
        sql += " AND NOT EXISTS (SELECT 1 FROM offerings_embeddings oe WHERE oe.offering_id = o.id)"
    sql += " ORDER BY o.created_at LIMIT %(limit)s"
    return _fetch_all(sql, params)


def upsert_offering_embedding(offering_id: str, embedding: Sequence[float]) -> None:
    """Persist one offering embedding, performing an idempotent upsert."""
    if not offering_id:
        raise ValueError("offering_id is required for upsert")
    if not embedding:
        raise ValueError("embedding must not be empty")

    params = {"offering_id": str(offering_id), "embedding": to_vector_literal(embedding)}
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_UPSERT_OFFERING_EMBEDDING, params)
        conn.commit()
        logger.debug("Upserted embedding for offering %s", offering_id)
