"""
Event payload catalog.

Describes the fields each event type carries as flat dotted paths. Used to
build example payloads for template editors, to check the paths a template
refers to, and to answer schema queries for unknown event types without
failing.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from rideway.models.integration import EventType

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class EventField:
    path: str
    type: str  # string | number | boolean | object | array
    description: str
    example: Any


@dataclass(frozen=True)
class EventSchema:
    description: str
    fields: List[EventField] = field(default_factory=list)

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.fields]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "fields": [asdict(f) for f in self.fields],
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _header_fields(event_type: str) -> List[EventField]:
    return [
        EventField("event", "string", "The type of event", event_type),
        EventField("timestamp", "string", "When the event was triggered", _now_iso()),
    ]


_MOTORCYCLE_FIELDS = [
    EventField("motorcycle.id", "string", "Unique identifier of the motorcycle", "ab123c-de456f-7890g"),
    EventField("motorcycle.name", "string", "Name of the motorcycle", "My Ducati"),
    EventField("motorcycle.make", "string", "Manufacturer of the motorcycle", "Ducati"),
    EventField("motorcycle.model", "string", "Model of the motorcycle", "Monster 937"),
    EventField("motorcycle.year", "number", "Year of the motorcycle", 2022),
]

_TASK_FIELDS = [
    EventField("task.id", "string", "Unique identifier of the maintenance task", "cd456e-fg789h-0123i"),
    EventField("task.name", "string", "Name of the maintenance task", "Oil Change"),
]


def _build_schemas() -> Dict[str, EventSchema]:
    return {
        EventType.MAINTENANCE_DUE.value: EventSchema(
            description="Triggered when maintenance is due for a motorcycle",
            fields=_header_fields("maintenance_due") + _MOTORCYCLE_FIELDS + _TASK_FIELDS,
        ),
        EventType.MAINTENANCE_COMPLETED.value: EventSchema(
            description="Triggered when maintenance is completed for a motorcycle",
            fields=_header_fields("maintenance_completed")
            + _MOTORCYCLE_FIELDS
            + _TASK_FIELDS
            + [
                EventField("record.id", "string", "Unique identifier of the maintenance record", "ef789g-hi012j-3456k"),
                EventField("record.date", "string", "Date when the maintenance was completed", _now_iso()),
                EventField("record.mileage", "number", "Motorcycle mileage when maintenance was completed", 5000),
                EventField("record.cost", "number", "Cost of the maintenance", 85.50),
                EventField("record.notes", "string", "Notes about the maintenance", "Used synthetic oil"),
            ],
        ),
        EventType.MILEAGE_UPDATED.value: EventSchema(
            description="Triggered when a motorcycle's mileage is updated",
            fields=_header_fields("mileage_updated")
            + _MOTORCYCLE_FIELDS
            + [
                EventField("previousMileage", "number", "Previous mileage value", 4500),
                EventField("newMileage", "number", "New updated mileage value", 5000),
            ],
        ),
        EventType.MOTORCYCLE_ADDED.value: EventSchema(
            description="Triggered when a new motorcycle is added",
            fields=_header_fields("motorcycle_added")
            + [
                EventField("id", "string", "Unique identifier of the motorcycle", "ab123c-de456f-7890g"),
                EventField("name", "string", "Name of the motorcycle", "My Ducati"),
                EventField("make", "string", "Manufacturer of the motorcycle", "Ducati"),
                EventField("model", "string", "Model of the motorcycle", "Monster 937"),
                EventField("year", "number", "Year of the motorcycle", 2022),
                EventField("vin", "string", "VIN of the motorcycle", "ZDM14BKW9MB123456"),
                EventField("color", "string", "Color of the motorcycle", "Red"),
            ],
        ),
    }


EVENT_SCHEMAS: Dict[str, EventSchema] = _build_schemas()


def get_safe_event_schema(event_type: str) -> EventSchema:
    """Registered schema, or a minimal event/timestamp schema for anything else."""
    schema = EVENT_SCHEMAS.get(event_type)
    if schema is not None:
        return schema
    return EventSchema(
        description="Event schema information",
        fields=_header_fields(event_type),
    )


def build_nested(fields: List[EventField]) -> Dict[str, Any]:
    """Turn flat dotted paths into a nested dict holding each field's example."""
    payload: Dict[str, Any] = {}
    for f in fields:
        parts = f.path.split(".")
        current = payload
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[parts[-1]] = f.example
    return payload


def generate_example_payload(event_type: str) -> Dict[str, Any]:
    """
    Example payload for an event type.

    Unknown types get the two header fields only. The timestamp is fresh on
    every call.
    """
    schema = get_safe_event_schema(event_type)
    fields = [
        EventField(f.path, f.type, f.description, _now_iso()) if f.path == "timestamp" else f
        for f in schema.fields
    ]
    return build_nested(fields)


def generate_default_template(event_type: str) -> str:
    """Pretty-printed example payload, the starting point for a custom template."""
    return json.dumps(generate_example_payload(event_type), indent=2)


def list_schemas() -> List[Dict[str, Any]]:
    return [{"type": event_type, **schema.to_dict()} for event_type, schema in EVENT_SCHEMAS.items()]


def unknown_template_paths(event_type: str, paths: List[str]) -> List[str]:
    """
    Template paths that do not resolve against the event schema.

    A path is known if it names a field or an object that contains fields
    (e.g. `motorcycle` for `motorcycle.name`).
    """
    known = set()
    for path in get_safe_event_schema(event_type).paths:
        parts = path.split(".")
        for i in range(1, len(parts) + 1):
            known.add(".".join(parts[:i]))
    return [path for path in paths if path not in known]
