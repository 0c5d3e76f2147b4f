"""Schema loading utilities for configuration and manifest documents."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import jsonschema

_SCHEMA_ROOT = Path(__file__).resolve().parent / "schemas"
_CATALOG_PATH = _SCHEMA_ROOT / "catalog.json"


@dataclass(frozen=True)
class SchemaDescriptor:
    """Descriptor describing a schema entry from the catalog."""

    document_type: str
    version: str
    schema_id: str
    schema_path: str


_catalog_cache: Dict[str, SchemaDescriptor] | None = None
_schema_cache: Dict[str, Dict[str, Any]] = {}
_compiled_cache: Dict[str, Any] = {}


def load_catalog() -> Dict[str, SchemaDescriptor]:
    """Load and cache the schema catalog."""

    global _catalog_cache
    if _catalog_cache is not None:
        return _catalog_cache

    raw_catalog = json.loads(_CATALOG_PATH.read_text("utf-8"))
    catalog: Dict[str, SchemaDescriptor] = {}
    for document_type, payload in raw_catalog.items():
        catalog[document_type] = SchemaDescriptor(
            document_type=document_type,
            version=payload["version"],
            schema_id=payload["schema_id"],
            schema_path=payload["schema_path"],
        )
    _catalog_cache = catalog
    return catalog


def get_descriptor(document_type: str) -> SchemaDescriptor:
    """Return the :class:`SchemaDescriptor` for *document_type*."""

    catalog = load_catalog()
    if document_type not in catalog:
        raise KeyError(f"Unknown document type: {document_type}")
    return catalog[document_type]


def load_schema(descriptor: SchemaDescriptor) -> Dict[str, Any]:
    """Load the JSON schema referenced by *descriptor*."""

    resolved = (_SCHEMA_ROOT / descriptor.schema_path).resolve()
    if not str(resolved).startswith(str(_SCHEMA_ROOT)):
        raise ValueError("Schema path escapes the schemas directory")

    cache_key = descriptor.schema_id
    if cache_key in _schema_cache:
        return copy.deepcopy(_schema_cache[cache_key])

    schema = json.loads(resolved.read_text("utf-8"))
    if "$id" in schema and schema["$id"] != descriptor.schema_id:
        raise ValueError(
            f"Schema id mismatch: catalog has {descriptor.schema_id!r}, schema has {schema['$id']!r}"
        )

    _schema_cache[cache_key] = schema
    return copy.deepcopy(schema)


def compile_validator(document_type: str) -> Any:
    """Return a cached Draft 2020-12 validator for *document_type*."""

    if document_type in _compiled_cache:
        return _compiled_cache[document_type]

    descriptor = get_descriptor(document_type)
    schema = load_schema(descriptor)
    jsonschema.Draft202012Validator.check_schema(schema)
    validator = jsonschema.Draft202012Validator(schema)
    _compiled_cache[document_type] = validator
    return validator


__all__ = [
    "SchemaDescriptor",
    "compile_validator",
    "get_descriptor",
    "load_catalog",
    "load_schema",
]
