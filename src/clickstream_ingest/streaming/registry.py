"""Thin wrapper around the Confluent Schema Registry client."""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Any

from confluent_kafka.schema_registry import SchemaRegistryClient
from confluent_kafka.schema_registry.avro import AvroDeserializer
from confluent_kafka.serialization import SerializationContext
from pydantic import BaseModel

from clickstream_ingest.config.models import RecordTypeConfig, RegistryConfig

SCHEMAS_DIR = Path(__file__).parent / "schemas"


def create_registry_client(config: RegistryConfig) -> SchemaRegistryClient:
    """Create a Schema Registry client."""
    conf: dict[str, Any] = {"url": config.url}
    if config.basic_auth_user is not None and config.basic_auth_password is not None:
        conf["basic.auth.user.info"] = (
            f"{config.basic_auth_user}:"
            f"{config.basic_auth_password.get_secret_value()}"
        )
    return SchemaRegistryClient(conf)


def import_model(path: str) -> type[BaseModel]:
    """Import a pydantic model class from a dotted path."""
    module_name, _, attr = path.rpartition(".")
    module = importlib.import_module(module_name)
    model = getattr(module, attr, None)
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        msg = f"'{path}' is not a pydantic model class"
        raise TypeError(msg)
    return model


def load_schema(path: str) -> str:
    """Read an Avro schema file; bare names resolve against the bundled schemas."""
    p = Path(path)
    if not p.exists():
        p = SCHEMAS_DIR / path
    if not p.exists():
        msg = f"Avro schema not found: {path}"
        raise FileNotFoundError(msg)
    return p.read_text()


def create_generic_deserializer(registry: SchemaRegistryClient) -> AvroDeserializer:
    """Deserializer that decodes with the writer schema into a plain dict."""
    return AvroDeserializer(registry)


def create_typed_deserializer(
    registry: SchemaRegistryClient,
    record_type: RecordTypeConfig,
) -> AvroDeserializer:
    """Deserializer that projects onto a reader schema and validates a model."""
    model = import_model(record_type.model)

    def _to_model(data: dict[str, Any], ctx: SerializationContext) -> BaseModel:
        return model.model_validate(data)

    schema_str = (
        load_schema(record_type.reader_schema) if record_type.reader_schema else None
    )
    return AvroDeserializer(registry, schema_str, from_dict=_to_model)
