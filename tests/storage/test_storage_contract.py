"""Shared contract suite, run once per backend.

Every backend must behave the same through the StorageAdapter API: key-value
round trips, namespaced get_all/clear, and document round trips that equal
the normalized input.
"""

import pytest

from roster.documents.normalizer import normalize
from roster.documents.snapshot import create_new_week
from roster.storage.base import assert_conforms_to_storage_contract
from tests.factories import make_document, make_player


@pytest.mark.asyncio
async def test_adapter_conforms(any_adapter):
    assert_conforms_to_storage_contract(any_adapter, type(any_adapter).__name__)


@pytest.mark.asyncio
async def test_key_value_round_trip(any_adapter):
    value = {"nested": [1, 2, {"deep": True}], "text": "hello", "none": None}

    await any_adapter.set("alpha", value)

    assert await any_adapter.get("alpha") == value


@pytest.mark.asyncio
async def test_get_missing_key_returns_none(any_adapter):
    assert await any_adapter.get("missing") is None


@pytest.mark.asyncio
async def test_remove_deletes_and_tolerates_missing(any_adapter):
    await any_adapter.set("alpha", 1)

    await any_adapter.remove("alpha")
    await any_adapter.remove("never-set")

    assert await any_adapter.get("alpha") is None


@pytest.mark.asyncio
async def test_get_all_and_clear(any_adapter):
    await any_adapter.set("a", 1)
    await any_adapter.set("b", [2])

    assert await any_adapter.get_all() == {"a": 1, "b": [2]}

    await any_adapter.clear()

    assert await any_adapter.get_all() == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["", None, 5])
async def test_invalid_keys_are_rejected(any_adapter, key):
    with pytest.raises(TypeError, match="non-empty strings"):
        await any_adapter.get(key)
    with pytest.raises(TypeError):
        await any_adapter.set(key, 1)


@pytest.mark.asyncio
async def test_first_read_materializes_default_document(any_adapter):
    doc = await any_adapter.get_root_data()

    assert doc["currentWeek"] == 1
    assert doc["weeks"]["1"]["players"] == []
    assert await any_adapter.get_root_data() == doc


@pytest.mark.asyncio
async def test_document_round_trip_equals_normalized_input(any_adapter):
    players = [make_player("a", price=6.0, have=True), make_player("b", price=4.5, form=3)]
    doc = create_new_week(normalize(make_document(players, captain="a")))
    doc["theme"] = "dark"

    written = await any_adapter.set_root_data(doc)

    assert written == normalize(doc)
    assert await any_adapter.get_root_data() == written


@pytest.mark.asyncio
async def test_set_root_data_replaces_previous_weeks(any_adapter):
    await any_adapter.set_root_data(create_new_week(normalize(make_document())))

    await any_adapter.set_root_data(normalize(make_document([make_player("z")])))

    doc = await any_adapter.get_root_data()
    assert list(doc["weeks"]) == ["1"]
    assert doc["weeks"]["1"]["players"][0]["id"] == "z"


@pytest.mark.asyncio
async def test_key_value_entries_do_not_leak_into_document(any_adapter):
    await any_adapter.set_root_data(normalize(make_document()))
    await any_adapter.set("pref", "x")

    doc = await any_adapter.get_root_data()
    await any_adapter.set_root_data(doc)

    assert "db:pref" not in doc
    assert await any_adapter.get("pref") == "x"
    await any_adapter.clear()
    assert (await any_adapter.get_root_data())["weeks"] == doc["weeks"]


@pytest.mark.asyncio
async def test_writing_legacy_shape_stores_default_document(any_adapter):
    legacy = {"players": [make_player("a", price=5.0, have=True)], "captain": "a", "viceCaptain": None}

    written = await any_adapter.set_root_data(legacy)

    assert written["weeks"]["1"]["players"] == []
