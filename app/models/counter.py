"""
Counter model
Named integer sequences for the numeric ids the client works with.
"""
from beanie import Document, UpdateResponse
from beanie.operators import Inc
from pydantic import Field


class Counter(Document):
    name: str = Field(..., unique=True)
    value: int = 0

    class Settings:
        name = "counters"
        indexes = ["name"]


async def next_sequence(name: str) -> int:
    """Atomically increment and return the sequence called ``name``."""
    counter = await Counter.find_one(Counter.name == name).upsert(
        Inc({Counter.value: 1}),
        on_insert=Counter(name=name, value=1),
        response_type=UpdateResponse.NEW_DOCUMENT,
    )
    return counter.value
