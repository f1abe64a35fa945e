"""
Schema Validation - JSON Schema (Draft 7) validation utilities.

Used to check both caller-supplied endpoint manifests and raw records
returned by the remote API before they are mapped onto the domain model.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)


def validate_schema(schema: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a schema is itself a valid Draft 7 JSON Schema.

    Args:
        schema: The schema to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        Draft7Validator.check_schema(schema)
        return True, None
    except Exception as e:
        return False, f"Invalid schema: {str(e)}"


def schema_errors(document: Any, schema: Dict[str, Any]) -> List[Tuple[str, str]]:
    """
    Collect validation errors for a document against a schema.

    Errors are ordered by path so the first entry is stable across runs.

    Args:
        document: The decoded JSON document to validate
        schema: The Draft 7 JSON Schema to validate against

    Returns:
        List of (dotted_path, message) tuples; empty when the document is valid.
    """
    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(document), key=lambda e: list(e.absolute_path))

    result = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        result.append((path, error.message))
    if result:
        logger.debug(f"Schema validation found {len(result)} error(s)")
    return result
