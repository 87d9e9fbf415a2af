"""Schema loading for decoded record bodies."""

import json
from functools import lru_cache
from pathlib import Path

GAME_RECORD_SCHEMA = Path(__file__).parent / "game_record.schema.json"


def load_schema(path: Path) -> dict:
    """Load a JSON Schema file and return as dict."""
    with open(path) as f:
        return json.load(f)


@lru_cache(maxsize=None)
def game_record_schema() -> dict:
    """Schema for the body of a ``Game`` record, loaded once."""
    return load_schema(GAME_RECORD_SCHEMA)
