"""
Declaration parsing for seed records

Turns the serialized item list carried by a lifecycle event into a validated,
ordered set of records. All validation happens here, before the reconciler
touches the store.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple, Union

from seedsync.exceptions import MalformedDeclarationError, MissingKeyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Declaration:
    """
    Authoritative set of records the reconciler should own after a run.

    Attributes:
        hash_key: Name of the key attribute identifying each record
        records: Records in declaration order, one per key (last entry wins)
    """

    hash_key: str
    records: Tuple[Dict[str, Any], ...]

    @property
    def keys(self) -> List[str]:
        """Hash key values in declaration order."""
        return [record[self.hash_key] for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Any],
        hash_key: str
    ) -> "Declaration":
        """
        Validate already-decoded records and build a declaration.

        Args:
            records: Sequence of record mappings
            hash_key: Key attribute name

        Returns:
            Declaration with duplicate keys collapsed (last entry wins)

        Raises:
            MalformedDeclarationError: If the input is not a list of objects
                or a key value is not a non-empty string
            MissingKeyError: If a record lacks the hash key attribute
        """
        validate_hash_key(hash_key)

        if isinstance(records, (str, bytes, dict)) or not isinstance(records, (list, tuple)):
            raise MalformedDeclarationError(
                f"Items must be a list of records, got {type(records).__name__}"
            )

        by_key: Dict[str, Dict[str, Any]] = {}
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise MalformedDeclarationError(
                    f"Item {index} must be an object, got {type(record).__name__}"
                )

            if hash_key not in record:
                raise MissingKeyError(
                    f"Item {index} is missing hash key attribute '{hash_key}'",
                    key_name=hash_key,
                    index=index
                )

            key_value = record[hash_key]
            if not isinstance(key_value, str) or not key_value:
                raise MalformedDeclarationError(
                    f"Item {index} has invalid '{hash_key}' value {key_value!r}: "
                    "expected a non-empty string"
                )

            if key_value in by_key:
                logger.warning(
                    f"Duplicate key {hash_key}={key_value!r} at item {index}, "
                    "later entry replaces earlier one"
                )
                # Re-insert so the surviving record keeps its final position
                del by_key[key_value]
            by_key[key_value] = dict(record)

        return cls(hash_key=hash_key, records=tuple(by_key.values()))


def validate_hash_key(hash_key: Any) -> str:
    """Ensure the hash key attribute name is usable."""
    if not isinstance(hash_key, str) or not hash_key:
        raise MalformedDeclarationError(
            f"HashKey must be a non-empty string, got {hash_key!r}"
        )
    return hash_key


def parse_declaration(text: Union[str, bytes], hash_key: str) -> Declaration:
    """
    Parse the JSON-encoded item list of a lifecycle event.

    Args:
        text: JSON array of record objects
        hash_key: Key attribute name every record must carry

    Returns:
        Validated Declaration

    Raises:
        MalformedDeclarationError: If the text is not a JSON array of objects
        MissingKeyError: If any record lacks the hash key
    """
    if not isinstance(text, (str, bytes)):
        raise MalformedDeclarationError(
            f"Items must be JSON text, got {type(text).__name__}"
        )

    try:
        decoded = json.loads(text)
    except ValueError as e:
        raise MalformedDeclarationError(f"Items is not valid JSON: {e}") from e

    declaration = Declaration.from_records(decoded, hash_key)
    logger.debug(f"Parsed declaration with {len(declaration)} records keyed on '{hash_key}'")
    return declaration
