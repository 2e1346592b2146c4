"""
Typed lifecycle events

Raw orchestrator payloads are validated once, at the dispatcher boundary,
into a LifecycleEvent. Parsing problems surface immediately as seedsync
errors instead of lookup errors deep inside the reconciler.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from seedsync.exceptions import MalformedDeclarationError, UnknownRequestTypeError
from seedsync.reconciliation.declaration import Declaration, parse_declaration, validate_hash_key


REDACTED_FIELDS = ("ResponseURL",)


class RequestType(Enum):
    """Lifecycle request types sent by the orchestrator."""
    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"


@dataclass(frozen=True)
class LifecycleEvent:
    """
    A validated lifecycle event.

    Attributes:
        request_type: Create, Update or Delete
        hash_key: Key attribute name of the target table
        table_name: Target table identifier
        declaration: Declared records (Create/Update only)
        response_url: Where the outcome report is delivered
        stack_id: Orchestrator stack identifier
        request_id: Unique id of this request
        logical_resource_id: Resource name inside the stack
        physical_resource_id: Id reported by a previous invocation, if any
    """

    request_type: RequestType
    hash_key: str
    table_name: str
    declaration: Optional[Declaration] = None
    response_url: Optional[str] = None
    stack_id: Optional[str] = None
    request_id: Optional[str] = None
    logical_resource_id: Optional[str] = None
    physical_resource_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "LifecycleEvent":
        """
        Validate a raw event payload.

        Args:
            raw: Event mapping as delivered by the orchestrator

        Returns:
            LifecycleEvent

        Raises:
            UnknownRequestTypeError: If RequestType is not Create/Update/Delete
            MalformedDeclarationError: If properties or Items are malformed
            MissingKeyError: If a declared record lacks the hash key
        """
        if not isinstance(raw, Mapping):
            raise MalformedDeclarationError(
                f"Lifecycle event must be an object, got {type(raw).__name__}"
            )

        request_type = parse_request_type(raw.get("RequestType"))

        properties = raw.get("ResourceProperties") or {}
        if not isinstance(properties, Mapping):
            raise MalformedDeclarationError("ResourceProperties must be an object")

        hash_key = properties.get("HashKey")
        table_name = properties.get("TableName")
        declaration = None

        if request_type is not RequestType.DELETE:
            validate_hash_key(hash_key)
            validate_table_name(table_name)
            declaration = parse_declaration(properties.get("Items"), hash_key)

        return cls(
            request_type=request_type,
            hash_key=hash_key if isinstance(hash_key, str) else "",
            table_name=table_name if isinstance(table_name, str) else "",
            declaration=declaration,
            response_url=raw.get("ResponseURL"),
            stack_id=raw.get("StackId"),
            request_id=raw.get("RequestId"),
            logical_resource_id=raw.get("LogicalResourceId"),
            physical_resource_id=raw.get("PhysicalResourceId")
        )

    @property
    def resolved_physical_resource_id(self) -> str:
        """Physical id to report: the existing one, or a stable derived one."""
        return self.physical_resource_id or default_physical_resource_id(
            self.table_name, self.hash_key
        )


def parse_request_type(value: Any) -> RequestType:
    """Map the RequestType string onto the enum."""
    try:
        return RequestType(value)
    except ValueError:
        raise UnknownRequestTypeError(value) from None


def validate_table_name(table_name: Any) -> str:
    """Ensure the target table identifier is a non-empty string."""
    if not isinstance(table_name, str) or not table_name:
        raise MalformedDeclarationError(
            f"TableName must be a non-empty string, got {table_name!r}"
        )
    return table_name


def default_physical_resource_id(table_name: Any, hash_key: Any) -> str:
    """
    Stable physical id for a seeded table.

    The id only changes when the table or key changes, so an Update that keeps
    both does not make the orchestrator delete the previous resource.
    """
    table = table_name if isinstance(table_name, str) and table_name else "unknown"
    key = hash_key if isinstance(hash_key, str) and hash_key else "unknown"
    return f"seed:{table}:{key}"


def resolve_physical_resource_id(raw: Any) -> str:
    """Physical id for a raw event, used when typed parsing failed."""
    if not isinstance(raw, Mapping):
        return default_physical_resource_id(None, None)

    existing = raw.get("PhysicalResourceId")
    if isinstance(existing, str) and existing:
        return existing

    properties = raw.get("ResourceProperties")
    if not isinstance(properties, Mapping):
        properties = {}
    return default_physical_resource_id(properties.get("TableName"), properties.get("HashKey"))


def redact_event(raw: Any) -> Any:
    """Copy of the event safe to log (pre-signed callback URL removed)."""
    if not isinstance(raw, Mapping):
        return raw
    redacted: Dict[str, Any] = dict(raw)
    for name in REDACTED_FIELDS:
        if name in redacted:
            redacted[name] = "***"
    return redacted
