"""Test doubles shared across the test modules."""

import asyncio
import base64
import io
import json
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from typing import Any, List, Optional, Union
from unittest import mock

from PIL import Image

from plantwise.database import initialize_database


def completion(content: Optional[str], total_tokens: int = 10) -> SimpleNamespace:
    """A chat completion shaped like the OpenAI SDK response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


class _FakeCompletions:
    def __init__(self, replies: List[Union[SimpleNamespace, Exception]]):
        self._replies = list(replies)
        self.calls: List[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if not self._replies:
            raise AssertionError("Unexpected completion call")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeOpenAI:
    """Stands in for AsyncOpenAI; replies are consumed in order."""

    def __init__(self, *replies: Union[SimpleNamespace, Exception]):
        self.completions = _FakeCompletions(list(replies))
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self) -> List[dict]:
        return self.completions.calls

    def queue(self, *replies: Union[SimpleNamespace, Exception]) -> None:
        self.completions._replies.extend(replies)


def evaluation_json(verdict: str = "compliant", **overrides: Any) -> str:
    evaluation = {
        "mode": "reversal",
        "item_type": "product",
        "verdict": verdict,
        "reasons": [],
        "fixes": [],
        "sodium_check": {
            "calories_per_serving": None,
            "sodium_mg_per_serving": None,
            "passes_rule": None,
        },
        "flags": {
            "contains_oil_or_hidden_fats": False,
            "contains_animal_product": False,
            "high_fat_plant_food": False,
            "added_sugars_or_syrups": False,
            "refined_grain_as_staple": False,
            "smoothie_or_juice": False,
            "caffeinated_coffee": False,
            "soy_servings_this_week": None,
            "fruit_servings_today": None,
        },
        "info_needed": [],
        "notes": "",
        "suggested_swaps": [],
    }
    evaluation.update(overrides)
    return json.dumps(evaluation)


def png_bytes(color=(34, 139, 34)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_base64() -> str:
    return base64.b64encode(png_bytes()).decode("utf-8")


class TempDatabaseTestCase(unittest.TestCase):
    """Points the session store at a fresh SQLite file for each test."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "sessions.db"
        patcher = mock.patch("plantwise.database.db_setup.DB_PATH", self.db_path)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)
        asyncio.run(initialize_database())
