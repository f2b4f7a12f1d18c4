"""Tests for v1 → v2 migration and the startup migration wrapper."""

import copy
import json

from roster.documents.migration import (
    BACKUP_STORAGE_KEY,
    LEGACY_STORAGE_KEY,
    PRIMARY_STORAGE_KEY,
    is_legacy_document,
    migrate_storage_if_needed,
    migrate_v1_to_v2,
)
from roster.documents.normalizer import normalize
from roster.storage.local_store import LocalStore
from tests.factories import legacy_document, make_document


def test_legacy_document_becomes_single_week():
    doc = migrate_v1_to_v2(legacy_document())

    assert doc["version"] == "2.0"
    assert doc["currentWeek"] == 1
    assert list(doc["weeks"]) == ["1"]
    week = doc["weeks"]["1"]
    assert [p["id"] for p in week["players"]] == ["p1", "p2", "p3"]
    assert week["captain"] == "p2"
    assert week["viceCaptain"] == "p1"
    assert week["isReadOnly"] is False


def test_migration_derives_team_fields_from_owned_players():
    week = migrate_v1_to_v2(legacy_document())["weeks"]["1"]

    assert week["teamMembers"] == [{"playerId": "p1", "addedAt": 1}, {"playerId": "p2", "addedAt": 1}]
    assert week["teamStats"]["totalValue"] == 15.5
    assert week["teamStats"]["playerCount"] == 2
    assert week["totalTeamCost"] == 15.5


def test_migration_does_not_mutate_input():
    legacy = legacy_document()
    snapshot = copy.deepcopy(legacy)

    doc = migrate_v1_to_v2(legacy)
    doc["weeks"]["1"]["players"][0]["name"] = "changed"

    assert legacy == snapshot


def test_migration_is_idempotent():
    once = migrate_v1_to_v2(legacy_document())

    assert migrate_v1_to_v2(once) == once


def test_versioned_input_is_only_normalized():
    doc = make_document()

    assert migrate_v1_to_v2(doc) == normalize(doc)


def test_is_legacy_document():
    assert is_legacy_document({"players": []})
    assert not is_legacy_document({"players": [], "version": "1.0"})
    assert not is_legacy_document({"players": [], "weeks": {}})
    assert not is_legacy_document({"players": "nope"})
    assert not is_legacy_document(None)


def test_storage_migration_writes_backup_and_primary():
    store = LocalStore()
    legacy_raw = json.dumps(legacy_document())
    store[LEGACY_STORAGE_KEY] = legacy_raw

    report = migrate_storage_if_needed(store)

    assert report.migrated is True
    assert report.backup_key == BACKUP_STORAGE_KEY
    assert store[BACKUP_STORAGE_KEY] == legacy_raw
    assert store[LEGACY_STORAGE_KEY] == legacy_raw
    assert json.loads(store[PRIMARY_STORAGE_KEY])["weeks"]["1"]["captain"] == "p2"


def test_storage_migration_is_noop_when_versioned_data_exists():
    store = LocalStore()
    store[LEGACY_STORAGE_KEY] = json.dumps(legacy_document())
    primary = json.dumps(make_document())
    store[PRIMARY_STORAGE_KEY] = primary

    report = migrate_storage_if_needed(store)

    assert report.migrated is False
    assert report.reason == "versioned-data-present"
    assert BACKUP_STORAGE_KEY not in store
    assert store[PRIMARY_STORAGE_KEY] == primary


def test_storage_migration_without_legacy_data():
    report = migrate_storage_if_needed(LocalStore())

    assert report.migrated is False
    assert report.reason == "no-legacy-data"


def test_storage_migration_leaves_unparsable_legacy_alone():
    store = LocalStore()
    store[LEGACY_STORAGE_KEY] = "{not json"

    report = migrate_storage_if_needed(store)

    assert report.reason == "legacy-unparsable"
    assert store[LEGACY_STORAGE_KEY] == "{not json"
    assert PRIMARY_STORAGE_KEY not in store
    assert BACKUP_STORAGE_KEY not in store


def test_storage_migration_skips_non_legacy_shape():
    store = LocalStore()
    store[LEGACY_STORAGE_KEY] = json.dumps({"something": "else"})

    report = migrate_storage_if_needed(store)

    assert report.reason == "not-legacy-shape"
    assert PRIMARY_STORAGE_KEY not in store
