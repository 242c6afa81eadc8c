# NimbusFlags/nimbus_sdk/validators/repository_validator.py
"""
Validator for toggles documents using JSON Schema.

This module loads the repository JSON Schema once at import time and
exposes a helper to validate fetched payloads, raising JsonError on error.
"""


from pathlib import Path
import json
from typing import Any

from jsonschema import validate as js_validate, ValidationError

from ..errors.exceptions import JsonError


# Resolve schema path
SCHEMA_PATH = (
    Path(__file__).resolve().parent.parent / "schemas" / "repository.schema.json"
)

# Load schema
with SCHEMA_PATH.open("r", encoding="utf-8") as f:
    REPOSITORY_SCHEMA = json.load(f)


def validate_repository_payload(payload: Any, body: str = "") -> None:
    """
    Validate a decoded toggles document against the repository schema.

    Args:
        payload: Parsed JSON body.
        body: The raw text the payload was decoded from, kept on the error.

    Raises:
        JsonError: If payload is not an object or violates the schema.
    """
    if not isinstance(payload, dict):
        raise JsonError(body, ValueError("Repository must be a JSON object."))

    try:
        js_validate(instance=payload, schema=REPOSITORY_SCHEMA)
    except ValidationError as e:
        raise JsonError(body, e) from e
