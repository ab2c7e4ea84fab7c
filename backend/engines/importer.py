"""Word List Import

Loads vocabulary from YAML files into a learner's bank. A file is either
a bare list of entries or a mapping with a ``words:`` list:

    source:
      type: reading
      title: Anna Karenina
    words:
      - word: ephemeral
        definition: lasting a very short time
        part_of_speech: adjective
        tags: [literary]

File-level ``source`` values apply to entries that don't set their own.
"""
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

import yaml
from pydantic import ValidationError

from core.errors import ErrorCode
from core.logging import engine_logger
from engines.vocabulary import VocabularyManager
from models.schemas import WordCreate

log = engine_logger()


@dataclass(slots=True)
class ImportSummary:
    added: int = 0
    skipped: int = 0
    failed: list[str] = field(default_factory=list)


def _source_defaults(data) -> dict:
    source = data.get("source") if isinstance(data, dict) else None
    if not isinstance(source, dict):
        return {}
    defaults = {
        "source_type": source.get("type"),
        "source_title": source.get("title"),
        "source_id": source.get("id"),
    }
    return {k: v for k, v in defaults.items() if v is not None}


def parse_word_list(data) -> list[WordCreate]:
    """Validate raw YAML data; invalid entries are logged and dropped."""
    if isinstance(data, dict):
        items = data.get("words") or []
    elif isinstance(data, list):
        items = data
    else:
        items = []
    defaults = _source_defaults(data)

    entries = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            log.warning("import_entry_skipped", index=index, reason="not a mapping")
            continue
        try:
            entries.append(WordCreate(**{**defaults, **item}))
        except ValidationError as e:
            log.warning(
                "import_entry_skipped",
                index=index,
                word=item.get("word"),
                reason="; ".join(err["msg"] for err in e.errors()),
            )
    return entries


def load_word_list(path: Path) -> list[WordCreate]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    entries = parse_word_list(data)
    log.info("word_list_loaded", path=str(path), entries=len(entries))
    return entries


async def import_word_list(
    manager: VocabularyManager, user_id: UUID, entries: list[WordCreate]
) -> ImportSummary:
    """Add entries to the user's bank; words already present are skipped."""
    summary = ImportSummary()
    for entry in entries:
        result = await manager.add_word(user_id, entry)
        if result.is_ok():
            summary.added += 1
            continue

        error = result.unwrap_err()
        if error.code is ErrorCode.E4011_DUPLICATE_KEY:
            summary.skipped += 1
        else:
            summary.failed.append(entry.word)
            log.warning("import_entry_failed", word=entry.word, code=error.code.name, message=error.message)

    log.info(
        "word_list_imported",
        user_id=str(user_id),
        added=summary.added,
        skipped=summary.skipped,
        failed=len(summary.failed),
    )
    return summary
