"""In-memory collection of graph entities and relationships for one sync run.

Entities and relationships are plain dicts. Reserved keys start with an
underscore (_key, _type, _class, _rawData, _fromEntityKey, _toEntityKey);
everything else is a property.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from scripts.okta_ingestion.errors import DuplicateKeyError

HAS = "HAS"
ASSIGNED = "ASSIGNED"


def create_entity(source: dict, assign: dict[str, Any]) -> dict[str, Any]:
    """Build an entity from an API record and the properties mapped out of it.

    Properties whose value is None are dropped.
    """
    entity = {k: v for k, v in assign.items() if v is not None}
    entity["_rawData"] = [{"name": "default", "rawData": source}]
    return entity


def relationship_type(from_type: str, rel_class: str, to_type: str) -> str:
    """okta_account + HAS + okta_user -> okta_account_has_user.

    The target type loses its provider prefix when both sides share it.
    """
    prefix = from_type.split("_", 1)[0] + "_"
    target = to_type[len(prefix):] if to_type.startswith(prefix) else to_type
    return f"{from_type}_{rel_class.lower()}_{target}"


def create_direct_relationship(
    rel_class: str,
    from_entity: dict[str, Any],
    to_entity: dict[str, Any],
    properties: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    from_key = from_entity["_key"]
    to_key = to_entity["_key"]
    relationship = {k: v for k, v in (properties or {}).items() if v is not None}
    relationship.update({
        "_key": f"{from_key}|{rel_class.lower()}|{to_key}",
        "_type": relationship_type(from_entity["_type"], rel_class, to_entity["_type"]),
        "_class": rel_class,
        "_fromEntityKey": from_key,
        "_toEntityKey": to_key,
        "displayName": rel_class,
    })
    return relationship


def entity_classes(entity: dict[str, Any]) -> list[str]:
    cls: Union[str, list[str]] = entity["_class"]
    return [cls] if isinstance(cls, str) else list(cls)


class JobState:
    """Collects the graph produced by the steps, rejecting duplicate keys."""

    def __init__(self) -> None:
        self._entities: dict[str, dict[str, Any]] = {}
        self._relationships: dict[str, dict[str, Any]] = {}
        self._data: dict[str, Any] = {}

    def add_entity(self, entity: dict[str, Any]) -> dict[str, Any]:
        key = entity["_key"]
        if key in self._entities:
            raise DuplicateKeyError(f"Duplicate entity key (key={key})")
        self._entities[key] = entity
        return entity

    def add_relationship(self, relationship: dict[str, Any]) -> dict[str, Any]:
        key = relationship["_key"]
        if key in self._relationships:
            raise DuplicateKeyError(f"Duplicate relationship key (key={key})")
        self._relationships[key] = relationship
        return relationship

    def has_key(self, key: str) -> bool:
        return key in self._entities or key in self._relationships

    def find_entity(self, key: str) -> Optional[dict[str, Any]]:
        return self._entities.get(key)

    def set_data(self, name: str, value: Any) -> None:
        self._data[name] = value

    def get_data(self, name: str) -> Any:
        return self._data.get(name)

    @property
    def collected_entities(self) -> list[dict[str, Any]]:
        return list(self._entities.values())

    @property
    def collected_relationships(self) -> list[dict[str, Any]]:
        return list(self._relationships.values())

    @property
    def encountered_types(self) -> list[str]:
        types = {e["_type"] for e in self._entities.values()}
        types.update(r["_type"] for r in self._relationships.values())
        return sorted(types)

    def counts_by_type(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for obj in list(self._entities.values()) + list(self._relationships.values()):
            counts[obj["_type"]] = counts.get(obj["_type"], 0) + 1
        return counts
