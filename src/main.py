"""Demo entrypoint wiring the query watcher to a SQLAlchemy engine.

This module contains a small, end-to-end "smoke test" that:

- Loads configuration from environment.
- Creates an in-memory SQLite engine and a DuckDB store.
- Runs a few statements while the watcher observes them.
- Logs what the store received.

It is **not** intended to be production wiring; web-framework integration and
the dashboard are handled by the host application.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import create_engine, text

from config import load_config
from querywatch import DuckDBQueryStore, QueryWatcher
from querywatch.handlers import SQLAlchemyHandler

logger = logging.getLogger("querywatch.demo")


async def run_demo() -> None:
    """Run a few queries through an observed engine and print the stored events."""
    cfg = load_config()
    logging.basicConfig(level=cfg.watcher.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    engine = create_engine("sqlite://")
    store = DuckDBQueryStore(path=cfg.store.path, table=cfg.store.table)
    handler = SQLAlchemyHandler(
        engine,
        max_queue_size=cfg.watcher.max_queue_size,
        preview_chars=cfg.watcher.preview_chars,
    )

    async with QueryWatcher(cfg.watcher, handlers=[handler], store=store) as watcher:
        with engine.begin() as conn:
            conn.execute(text("create table user (id integer primary key, name varchar(50))"))
            conn.execute(text("insert into user (name) values (:name)"), [{"name": "John Doe"}, {"name": "O'Brien"}])
            conn.execute(text("select id, name from user where name = :name and id > :id"), {"name": "John Doe", "id": 0})
        # Let the handler catch up before reading back.
        await asyncio.sleep(0.1)
        for row in store.rows(limit=10):
            logger.info("[%s] %s %s\n%s", row["type"], row["createdAt"], row["duration"], row["query"])
        logger.info("stats: %s", watcher.stats())


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
