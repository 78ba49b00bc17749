"""Tests for MappedGroupStore."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from specialty_match.errors import PersistenceError
from specialty_match.mapping.groups import GROUPS_KEY, MappedGroupStore
from specialty_match.models.specialty import Observation
from specialty_match.storage.base import MemoryRecordStore
from specialty_match.storage.json_file import JsonFileRecordStore


class FailingWriteStore(MemoryRecordStore):
    """Memory store whose document writes always fail."""

    def set(self, key: str, value: Any) -> None:
        raise OSError("disk full")


@pytest.fixture
def groups() -> MappedGroupStore:
    store = MappedGroupStore()
    store.initialize()
    return store


def _pair() -> list[Observation]:
    return [
        Observation(specialty="Cardiology", vendor="MGMA"),
        Observation(specialty="Cardiovascular Disease", vendor="SULLIVANCOTTER"),
    ]


class TestMappedGroupStore:
    """Tests for group creation, exclusion keys, and deletion."""

    def test_create(self, groups: MappedGroupStore) -> None:
        group = groups.create(_pair())
        assert group.is_single_source is False
        assert groups.get(group.id) == group
        assert groups.already_mapped() == {
            "cardiology:mgma",
            "cardiovascular disease:sullivancotter",
        }

    def test_observation_cannot_join_two_groups(self, groups: MappedGroupStore) -> None:
        groups.create(_pair())
        with pytest.raises(ValueError, match="Already mapped"):
            groups.create(
                [
                    Observation(specialty="cardiology", vendor="mgma"),
                    Observation(specialty="Cardiology", vendor="GALLAGHER"),
                ]
            )
        assert len(groups.groups()) == 1

    def test_vendor_spellings_are_one_source(self, groups: MappedGroupStore) -> None:
        group = groups.create(
            [
                Observation(specialty="Cardiology", vendor="Sullivan Cotter"),
                Observation(specialty="Cardiovascular Disease", vendor="SULLIVANCOTTER"),
            ]
        )
        assert group.is_single_source is True

    def test_group_for(self, groups: MappedGroupStore) -> None:
        group = groups.create(_pair())
        found = groups.group_for(Observation(specialty="cardiology", vendor="mgma"))
        assert found is not None
        assert found.id == group.id
        assert groups.group_for(Observation(specialty="Cardiology", vendor="GALLAGHER")) is None

    def test_extend_adds_members(self, groups: MappedGroupStore) -> None:
        group = groups.create(_pair())
        gallagher = Observation(specialty="Cardiology", vendor="GALLAGHER")

        extended = groups.extend(group.id, [gallagher, _pair()[0]])

        assert extended.id == group.id
        assert extended.created_at == group.created_at
        assert [o.key for o in extended.specialties] == [
            "cardiology:mgma",
            "cardiovascular disease:sullivancotter",
            "cardiology:gallagher",
        ]
        assert len(groups.groups()) == 1
        assert "cardiology:gallagher" in groups.already_mapped()

    def test_extend_rejects_member_of_other_group(self, groups: MappedGroupStore) -> None:
        first = groups.create(_pair())
        other = groups.create(
            [
                Observation(specialty="Family Medicine", vendor="MGMA"),
                Observation(specialty="Family Practice", vendor="GALLAGHER"),
            ]
        )
        with pytest.raises(ValueError, match="Already mapped"):
            groups.extend(first.id, [other.specialties[1]])
        assert len(groups.get(first.id).specialties) == 2

    def test_extend_unknown_group(self, groups: MappedGroupStore) -> None:
        with pytest.raises(KeyError):
            groups.extend("missing", _pair())

    def test_delete_frees_observations(self, groups: MappedGroupStore) -> None:
        group = groups.create(_pair())
        assert groups.delete(group.id) is True
        assert groups.already_mapped() == set()
        assert groups.delete(group.id) is False

    def test_persisted_across_instances(self, tmp_path: Path) -> None:
        backend = JsonFileRecordStore(tmp_path / "state")
        first = MappedGroupStore(backend)
        first.initialize()
        created = first.create(_pair())

        second = MappedGroupStore(backend)
        second.initialize()
        assert [g.id for g in second.groups()] == [created.id]

    def test_corrupt_groups_load_empty(self) -> None:
        backend = MemoryRecordStore()
        backend.set(GROUPS_KEY, [{"specialties": []}])
        groups = MappedGroupStore(backend)
        groups.initialize()
        assert groups.groups() == []

    def test_failed_save_raises(self) -> None:
        groups = MappedGroupStore(FailingWriteStore())
        groups.initialize()
        with pytest.raises(PersistenceError):
            groups.create(_pair())
