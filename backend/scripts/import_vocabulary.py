#!/usr/bin/env python3
"""Import a YAML word list into a learner's vocabulary bank.

Run with: python3 -m scripts.import_vocabulary data/vocabulary/starter.yaml
"""
import argparse
import asyncio
from pathlib import Path
from uuid import UUID

from core.cache import get_cache
from core.config import settings
from core.database import get_db_session, init_models
from core.logging import configure_logging, get_logger
from core.security import SINGLE_USER_ID
from engines.importer import import_word_list, load_word_list
from engines.vocabulary import VocabularyManager

log = get_logger("scripts.import_vocabulary")


async def main(path: Path, user_id: UUID) -> int:
    await init_models()
    log.info("import_started", path=str(path), user_id=str(user_id))
    entries = load_word_list(path)

    async with get_db_session() as session:
        manager = VocabularyManager(session, get_cache())
        summary = await import_word_list(manager, user_id, entries)

    print(f"Imported {summary.added} words, skipped {summary.skipped} already in the bank")
    if summary.failed:
        print(f"Failed: {', '.join(summary.failed)}")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import vocabulary from a YAML word list")
    parser.add_argument("path", type=Path, help="YAML file with a list of words")
    parser.add_argument(
        "--user-id", "-u", type=UUID, default=SINGLE_USER_ID,
        help="Learner to import for (default: the local single user)",
    )
    args = parser.parse_args()
    configure_logging(level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    raise SystemExit(asyncio.run(main(args.path, args.user_id)))
