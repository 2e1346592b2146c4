"""
Ownership Marker for seed records

Tags records written by the reconciler so they can be told apart from records
other writers put into the same table.
"""

from typing import Any, Dict

DEFAULT_MARKER_ATTRIBUTE = "CF_MANAGED"


class OwnershipMarker:
    """
    Attaches and tests the ownership attribute on records.

    Only the boolean value ``True`` counts as owned. A missing attribute, or
    any other value (``False``, ``"true"``, ``1``), is treated as not owned.
    """

    def __init__(self, attribute: str = DEFAULT_MARKER_ATTRIBUTE):
        if not attribute or not isinstance(attribute, str):
            raise ValueError("Marker attribute must be a non-empty string")
        self.attribute = attribute

    def mark(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Return a copy of the record with the ownership attribute set to True.

        Args:
            record: Record to mark (left untouched)

        Returns:
            Marked copy of the record
        """
        marked = dict(record)
        marked[self.attribute] = True
        return marked

    def is_owned(self, record: Dict[str, Any]) -> bool:
        """Check whether the record was written by the reconciler."""
        return record.get(self.attribute) is True

    def strip(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of the record without the ownership attribute."""
        return {k: v for k, v in record.items() if k != self.attribute}

    def __repr__(self) -> str:
        return f"OwnershipMarker(attribute={self.attribute!r})"


_default_marker = OwnershipMarker()


def mark(record: Dict[str, Any]) -> Dict[str, Any]:
    """Mark a record with the default ownership attribute."""
    return _default_marker.mark(record)


def is_owned(record: Dict[str, Any]) -> bool:
    """Test a record against the default ownership attribute."""
    return _default_marker.is_owned(record)
