"""CLI job to (re)compute offering embeddings and persist them for vector search."""

import argparse
import logging
from typing import Dict, Optional

from vibesearch.core.config import get_settings, require_settings
from vibesearch.core.db import fetch_offerings_for_embedding, init_pool, upsert_offering_embedding
from vibesearch.etl.transform import offering_embedding_text
from vibesearch.search.embeddings import EmbeddingClient

logger = logging.getLogger(__name__)


def run_embedding_job(
    *,
    offering_id: Optional[str] = None,
    batch_size: int = 10,
    force: bool = False,
    embeddings: Optional[EmbeddingClient] = None,
) -> Dict[str, int]:
    settings = get_settings()
    require_settings(settings, "openai_api_key", "database_url")
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    init_pool()
    client = embeddings or EmbeddingClient(settings.openai_api_key, model=settings.embedding_model)

    rows = fetch_offerings_for_embedding(offering_id=offering_id, limit=batch_size, force=force)
    logger.info("Loaded %d offerings to embed (offering_id=%s, force=%s)", len(rows), offering_id, force)
    if not rows:
        return {"processed": 0, "success_count": 0, "error_count": 0}

    texts = [offering_embedding_text(row) for row in rows]
    vectors = client.embed_many(texts)

    success_count = 0
    error_count = 0
    for row, vector in zip(rows, vectors):
        try:
            upsert_offering_embedding(str(row["id"]), vector)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to store embedding for offering %s: %s", row.get("id"), exc)
            error_count += 1
            continue
        success_count += 1

    logger.info("Completed run: processed=%d success=%d errors=%d", len(rows), success_count, error_count)
    return {"processed": len(rows), "success_count": success_count, "error_count": error_count}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate embeddings for active offerings")
    parser.add_argument("--offering-id", dest="offering_id", help="Embed a single offering")
    parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=10,
        help="Maximum number of offerings to embed in this run",
    )
    parser.add_argument(
        "--force",
        dest="force",
        action="store_true",
        help="Re-embed offerings that already have an embedding",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    run_embedding_job(offering_id=args.offering_id, batch_size=args.batch_size, force=args.force)


if __name__ == "__main__":
    main()
