"""
Feedback Service — persists seller decisions (approve/deny/modify) on AI
suggestions to a JSON file and summarizes recent decisions into a calibration
digest that is sent along with the next recommendation request.

The store only prepares facts. How they bias future suggestions is up to the
model reading the digest.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional
import anyio
from ppc_copilot.models import FeedbackEntry
from ppc_copilot.utils import utc_isoformat

logger = logging.getLogger(__name__)

MAX_ENTRIES = 200
SUMMARY_WINDOW = 50

ACTION_BUCKETS = {"approve": "approved", "deny": "denied", "modify": "modified"}


@dataclass
class FeedbackDigest:
    approved: list[dict] = field(default_factory=list)
    denied: list[dict] = field(default_factory=list)
    modified: list[dict] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.approved) + len(self.denied) + len(self.modified)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict:
        return {
            "approved": self.approved,
            "denied": self.denied,
            "modified": self.modified,
            "total": self.total,
        }

    def to_prompt(self) -> str:
        """Render the digest as plain-language context for the model."""
        if self.is_empty:
            return ""

        parts = [
            f"The seller has reviewed {self.total} recent AI suggestions. "
            "Lean toward patterns they approved and away from patterns they denied."
        ]
        for label, items in (
            ("APPROVED", self.approved),
            ("DENIED", self.denied),
            ("MODIFIED (seller adjusted the value before applying)", self.modified),
        ):
            if not items:
                continue
            parts.append(f"\n{label} ({len(items)}):")
            for item in items:
                line = f"  - [{item['suggestionType']}] \"{item['suggestionTitle']}\" on {item['campaignName']}"
                values = _format_values(item)
                if values:
                    line += f" ({values})"
                if item.get("userNote"):
                    line += f" — seller note: {item['userNote']}"
                parts.append(line)
        return "\n".join(parts)


def _format_values(item: dict) -> str:
    current = item.get("currentValue")
    recommended = item.get("recommendedValue")
    if current is None and recommended is None:
        return ""
    unit = item.get("unit") or ""

    def fmt(v) -> str:
        if v is None:
            return "?"
        if unit == "$":
            return f"${v}"
        return f"{v}{unit}"

    return f"{fmt(current)} → {fmt(recommended)}"


class FeedbackStore:
    """Append-only JSON log capped at max_entries (oldest dropped on write)."""

    def __init__(self, path: str, max_entries: int = MAX_ENTRIES):
        self.path = anyio.Path(path)
        self.max_entries = max_entries
        self._write_lock = asyncio.Lock()

    async def read_all(self) -> list[FeedbackEntry]:
        """Return the retained log. A missing file is an empty log."""
        try:
            text = await self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        raw = json.loads(text) if text.strip() else []
        return [FeedbackEntry.model_validate(item) for item in raw]

    async def _write(self, entries: list[FeedbackEntry]) -> None:
        await self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([e.to_json_dict(exclude_none=True) for e in entries], indent=2)
        tmp = self.path.with_name(self.path.name + ".tmp")
        await tmp.write_text(payload, encoding="utf-8")
        await tmp.replace(self.path)

    async def append(self, entry: FeedbackEntry) -> FeedbackEntry:
        """Append one entry (server timestamp if omitted) and truncate to the newest max_entries."""
        if not entry.timestamp:
            entry = entry.model_copy(update={"timestamp": utc_isoformat()})

        async with self._write_lock:
            entries = await self.read_all()
            entries.append(entry)
            await self._write(entries[-self.max_entries:])

        logger.info(
            f"[AI Feedback] {entry.action.upper()} on \"{entry.suggestion_title}\" "
            f"for campaign \"{entry.campaign_name}\""
            + (f" — Note: {entry.user_note}" if entry.user_note else "")
        )
        return entry

    async def summarize(self, window_size: Optional[int] = SUMMARY_WINDOW) -> FeedbackDigest:
        """Bucket the most recent window_size entries by action."""
        entries = await self.read_all()
        if window_size is not None:
            entries = entries[-window_size:] if window_size > 0 else []

        digest = FeedbackDigest()
        for e in entries:
            item = {
                "suggestionType": e.suggestion_type,
                "suggestionTitle": e.suggestion_title,
                "campaignName": e.campaign_name,
            }
            for key, value in (
                ("userNote", e.user_note),
                ("currentValue", e.current_value),
                ("recommendedValue", e.recommended_value),
                ("unit", e.unit),
            ):
                if value is not None:
                    item[key] = value
            getattr(digest, ACTION_BUCKETS[e.action]).append(item)
        return digest
