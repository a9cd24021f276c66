"""Unit tests for Schema Registry helpers."""

from __future__ import annotations

import pytest
from confluent_kafka.schema_registry.avro import AvroDeserializer

from clickstream_ingest.config.models import RecordTypeConfig, RegistryConfig
from clickstream_ingest.streaming.decoder import Decoder
from clickstream_ingest.streaming.records import ClickEvent
from clickstream_ingest.streaming.registry import (
    create_registry_client,
    create_typed_deserializer,
    import_model,
    load_schema,
)

CLICK_MODEL = "clickstream_ingest.streaming.records.ClickEvent"


class TestImportModel:
    def test_imports_pydantic_model(self):
        assert import_model(CLICK_MODEL) is ClickEvent

    def test_rejects_non_model(self):
        with pytest.raises(TypeError, match="not a pydantic model"):
            import_model("clickstream_ingest.streaming.registry.SCHEMAS_DIR")

    def test_missing_module(self):
        with pytest.raises(ModuleNotFoundError):
            import_model("no_such_module.Model")


class TestLoadSchema:
    def test_bundled_schema_by_name(self):
        assert '"name": "ClickEvent"' in load_schema("ClickEvent.avsc")

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "x.avsc"
        path.write_text('{"type": "string"}')
        assert load_schema(str(path)) == '{"type": "string"}'

    def test_missing_schema(self):
        with pytest.raises(FileNotFoundError):
            load_schema("Missing.avsc")


class TestRegistryClient:
    def test_client_with_basic_auth(self):
        client = create_registry_client(
            RegistryConfig(
                url="http://registry:8081",
                basic_auth_user="user",
                basic_auth_password="pass",
            )
        )
        assert client is not None

    def test_typed_deserializer_with_reader_schema(self):
        client = create_registry_client(RegistryConfig())
        deser = create_typed_deserializer(
            client, RecordTypeConfig(model=CLICK_MODEL, reader_schema="ClickEvent.avsc")
        )
        assert isinstance(deser, AvroDeserializer)

    def test_decoder_from_config(self):
        decoder = Decoder.from_config(
            RegistryConfig(record_types={"clickstream": RecordTypeConfig(model=CLICK_MODEL)})
        )
        assert decoder.typed_topics == ["clickstream"]
