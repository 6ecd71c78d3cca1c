"""
Manifest Validation - JSON Schema validation for Project, ProviderConfig and
Secret manifests.

Schemas follow the OpenAPI v3 subset used by Kubernetes CRDs, validated with
Draft 7 (which OpenAPI 3.0 uses).
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

logger = logging.getLogger(__name__)

_STRING_MAP = {"type": "object", "additionalProperties": {"type": "string"}}

PROJECT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["kind", "metadata", "spec"],
    "properties": {
        "apiVersion": {"type": "string"},
        "kind": {"const": "Project"},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "annotations": _STRING_MAP,
                "labels": _STRING_MAP,
                "deletionTimestamp": {"type": ["string", "null"]},
            },
        },
        "spec": {
            "type": "object",
            "required": ["forProvider"],
            "properties": {
                "forProvider": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "labels": _STRING_MAP,
                        "annotations": _STRING_MAP,
                        "users": {"type": "array", "items": {"type": "string"}},
                    },
                    "additionalProperties": False,
                },
                "providerConfigRef": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {"name": {"type": "string", "minLength": 1}},
                },
                "deletionPolicy": {"enum": ["Delete", "Orphan"]},
            },
        },
        "status": {"type": "object"},
    },
}

PROVIDER_CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["kind", "metadata", "spec"],
    "properties": {
        "apiVersion": {"type": "string"},
        "kind": {"const": "ProviderConfig"},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {"name": {"type": "string", "minLength": 1}},
        },
        "spec": {
            "type": "object",
            "required": ["credentials"],
            "properties": {
                "host": {"type": "string", "format": "uri"},
                "credentials": {
                    "type": "object",
                    "required": ["source"],
                    "properties": {
                        "source": {"enum": ["Secret", "Environment", "Filesystem"]},
                        "secretRef": {
                            "type": "object",
                            "required": ["name", "key"],
                            "properties": {
                                "name": {"type": "string"},
                                "namespace": {"type": "string"},
                                "key": {"type": "string"},
                            },
                        },
                        "env": {
                            "type": "object",
                            "required": ["name"],
                            "properties": {"name": {"type": "string"}},
                        },
                        "fs": {
                            "type": "object",
                            "required": ["path"],
                            "properties": {"path": {"type": "string"}},
                        },
                    },
                },
            },
        },
    },
}

SECRET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["kind", "metadata"],
    "properties": {
        "kind": {"const": "Secret"},
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {"name": {"type": "string", "minLength": 1}},
        },
        "data": _STRING_MAP,
        "stringData": _STRING_MAP,
    },
}

SCHEMAS_BY_KIND: Dict[str, Dict[str, Any]] = {
    "Project": PROJECT_SCHEMA,
    "ProviderConfig": PROVIDER_CONFIG_SCHEMA,
    "Secret": SECRET_SCHEMA,
}


def validate_spec_against_schema(
    spec: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        spec: The document to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
        errors = sorted(validator.iter_errors(spec), key=lambda e: list(e.absolute_path))

        if not errors:
            return True, None

        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"


def validate_manifest(manifest: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate a manifest against the schema registered for its kind.

    Args:
        manifest: A parsed YAML/JSON document

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(manifest, dict):
        return False, "Manifest must be a mapping"

    kind = manifest.get("kind")
    schema = SCHEMAS_BY_KIND.get(kind)
    if schema is None:
        known = ", ".join(sorted(SCHEMAS_BY_KIND))
        return False, f"Unsupported kind: {kind!r}. Supported kinds: {known}"

    return validate_spec_against_schema(manifest, schema)
