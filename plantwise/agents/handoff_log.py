"""
In-memory log of routing decisions.

Bounded: once an append pushes it past `capacity` records, only the most
recent `trim_to` are kept. Not locked; it is only touched from the event loop.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List

from plantwise.models import HandoffRecord

DEFAULT_CAPACITY = 100
DEFAULT_TRIM_TO = 50
RECENT_COUNT = 10


class HandoffLog:
    def __init__(self, capacity: int = DEFAULT_CAPACITY, trim_to: int = DEFAULT_TRIM_TO):
        if not 0 < trim_to <= capacity:
            raise ValueError("trim_to must be between 1 and capacity")
        self.capacity = capacity
        self.trim_to = trim_to
        self._records: List[HandoffRecord] = []

    def append(self, record: HandoffRecord) -> None:
        self._records.append(record)
        if len(self._records) > self.capacity:
            self._records = self._records[-self.trim_to:]

    @property
    def records(self) -> List[HandoffRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def stats(self) -> Dict[str, Any]:
        """Totals per agent plus the last few handoffs (camelCase records)."""
        usage = Counter(record.agent for record in self._records)
        return {
            "total_handoffs": len(self._records),
            "agent_usage": dict(usage),
            "recent_handoffs": [
                record.model_dump(by_alias=True) for record in self._records[-RECENT_COUNT:]
            ],
        }

    def reset(self) -> Dict[str, str]:
        self._records = []
        return {"message": "Handoff history cleared", "timestamp": datetime.now().isoformat()}
