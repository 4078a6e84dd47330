import random

import pytest

from app.errors import ContractViolation
from app.services.journal import JournalStore


@pytest.mark.asyncio
async def test_sample_of_empty_journal_is_none(entries_store):
    assert await JournalStore(entries_store).sample("1") is None


@pytest.mark.asyncio
async def test_append_then_sample(entries_store):
    journal = JournalStore(entries_store)
    await journal.append("1", "x")
    assert await journal.sample("1") == "x"
    assert entries_store.data["1"] == '["x"]'


@pytest.mark.asyncio
async def test_sample_eventually_hits_every_entry(entries_store):
    journal = JournalStore(entries_store, rng=random.Random(3))
    for entry in ("tea", "friends", "rain"):
        await journal.append("1", entry)

    seen = {await journal.sample("1") for _ in range(200)}

    assert seen == {"tea", "friends", "rain"}
    # sampling never removes anything
    assert await journal.entries("1") == ["tea", "friends", "rain"]


@pytest.mark.asyncio
async def test_journals_are_per_user(entries_store):
    journal = JournalStore(entries_store)
    await journal.append("1", "mine")
    assert await journal.sample("2") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", '{"a": 1}', "[1, 2]"])
async def test_corrupt_journal_is_a_contract_violation(entries_store, raw):
    entries_store.data["1"] = raw
    with pytest.raises(ContractViolation):
        await JournalStore(entries_store).sample("1")
