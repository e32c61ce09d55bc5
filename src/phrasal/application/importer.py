"""
Phrase importer.

Reads a YAML list of phrases and adds each one to the store. Entries are
either bare strings or mappings with `text`, `translation` and `context`:

    - hola mundo
    - text: buenos días
      translation: good morning
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from phrasal.domain.models import Phrase
from phrasal.infrastructure.adapters.sql_store import SqlStore

logger = logging.getLogger(__name__)


class PhraseFileError(ValueError):
    """The phrase file could not be read or has the wrong shape."""


@dataclass(frozen=True)
class PhraseInput:
    text: str
    translation: str | None = None
    context: str | None = None


def parse_phrases(content: str) -> list[PhraseInput]:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise PhraseFileError(f"Invalid YAML: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("phrases", [])
    if not isinstance(data, list):
        raise PhraseFileError("Expected a list of phrases")

    phrases = []
    for index, entry in enumerate(data, start=1):
        if isinstance(entry, str):
            text, translation, context = entry, None, None
        elif isinstance(entry, dict):
            text = entry.get("text")
            translation = entry.get("translation")
            context = entry.get("context")
        else:
            raise PhraseFileError(f"Entry {index}: expected a string or mapping")

        if not text or not str(text).strip():
            raise PhraseFileError(f"Entry {index}: missing phrase text")
        phrases.append(
            PhraseInput(
                text=str(text).strip(),
                translation=str(translation) if translation is not None else None,
                context=str(context) if context is not None else None,
            )
        )
    return phrases


def load_phrases(path: Path) -> list[PhraseInput]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PhraseFileError(f"Cannot read {path}: {e}") from e
    return parse_phrases(content)


def import_phrases(store: SqlStore, user_id: str, path: Path) -> list[Phrase]:
    """Add every phrase in the file. Returns the stored phrases."""
    entries = load_phrases(path)
    added = [
        store.add_phrase(user_id, entry.text, entry.translation, entry.context)
        for entry in entries
    ]
    logger.info(f"Imported {len(added)} phrases from {path}")
    return added
