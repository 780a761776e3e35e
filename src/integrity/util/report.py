"""JSON run reports written next to a record or wherever the user asks."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping


def write_report(payload: Mapping[str, Any], dest: Path) -> Path:
    """Write `payload` as indented JSON to `dest`, stamping the generation time."""

    dest.parent.mkdir(parents=True, exist_ok=True)
    document = {"generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"), **payload}
    dest.write_text(json.dumps(document, indent=2, default=str), encoding="utf-8")
    return dest


__all__ = ["write_report"]
