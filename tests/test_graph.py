from __future__ import annotations

import pytest

from scripts.okta_ingestion.errors import DuplicateKeyError
from scripts.okta_ingestion.graph import (
    ASSIGNED,
    HAS,
    JobState,
    create_direct_relationship,
    create_entity,
    entity_classes,
    relationship_type,
)

ACCOUNT = {"_key": "acct", "_type": "okta_account", "_class": "Account"}
USER = {"_key": "00u1", "_type": "okta_user", "_class": "User"}
DEVICE = {"_key": "mfa1", "_type": "mfa_device", "_class": ["Key", "AccessKey"]}


class TestCreateEntity:
    def test_drops_none_and_keeps_raw(self):
        source = {"id": "00u1", "extra": 1}
        entity = create_entity(source, {"_key": "00u1", "name": "Ada", "lastLoginOn": None})
        assert entity["name"] == "Ada"
        assert "lastLoginOn" not in entity
        assert entity["_rawData"] == [{"name": "default", "rawData": source}]

    def test_entity_classes(self):
        assert entity_classes(USER) == ["User"]
        assert entity_classes(DEVICE) == ["Key", "AccessKey"]


class TestRelationships:
    @pytest.mark.parametrize(
        "from_type, rel_class, to_type, expected",
        [
            ("okta_account", HAS, "okta_user", "okta_account_has_user"),
            ("okta_user_group", HAS, "okta_user", "okta_user_group_has_user"),
            ("okta_user", ASSIGNED, "mfa_device", "okta_user_assigned_mfa_device"),
        ],
    )
    def test_type_names(self, from_type, rel_class, to_type, expected):
        assert relationship_type(from_type, rel_class, to_type) == expected

    def test_direct_relationship(self):
        rel = create_direct_relationship(ASSIGNED, USER, DEVICE, {"note": "x", "skip": None})
        assert rel["_key"] == "00u1|assigned|mfa1"
        assert rel["_class"] == "ASSIGNED"
        assert rel["_fromEntityKey"] == "00u1"
        assert rel["_toEntityKey"] == "mfa1"
        assert rel["note"] == "x"
        assert "skip" not in rel


class TestJobState:
    def test_duplicate_entity_rejected(self):
        state = JobState()
        state.add_entity(dict(USER))
        with pytest.raises(DuplicateKeyError):
            state.add_entity(dict(USER))

    def test_duplicate_relationship_rejected(self):
        state = JobState()
        rel = create_direct_relationship(HAS, ACCOUNT, USER)
        state.add_relationship(rel)
        with pytest.raises(DuplicateKeyError):
            state.add_relationship(dict(rel))

    def test_lookup_and_data(self):
        state = JobState()
        state.add_entity(dict(ACCOUNT))
        state.add_entity(dict(USER))
        state.add_relationship(create_direct_relationship(HAS, ACCOUNT, USER))
        state.set_data("account", ACCOUNT)

        assert state.has_key("00u1")
        assert state.has_key("acct|has|00u1")
        assert state.find_entity("missing") is None
        assert state.get_data("account") is ACCOUNT
        assert state.encountered_types == ["okta_account", "okta_account_has_user", "okta_user"]
        assert state.counts_by_type() == {
            "okta_account": 1,
            "okta_user": 1,
            "okta_account_has_user": 1,
        }
