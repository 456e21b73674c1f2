"""Tests for the .project-info metadata store."""

import tempfile

import pytest

from ccc.errors import MalformedMetadataError
from ccc.models.project import ProjectRecord
from ccc.models.template import TemplateMeta
from ccc.paths import StoragePaths
from ccc.storage.metadata import MetadataStore, parse_record, serialize_record


def _record(**overrides) -> ProjectRecord:
    data = {
        "name": "my-app",
        "path": "/home/dev/src/my-app",
        "template_type": "web-dev",
        "template_version": "1.2.0",
        "setup_date": "2026-01-02T10:00:00.123456+00:00",
        "last_update": "2026-03-04T11:30:00+00:00",
    }
    data.update(overrides)
    return ProjectRecord(**data)


def test_serialize_uses_upper_case_keys_in_order():
    text = serialize_record(_record())
    assert text.splitlines() == [
        "PROJECT_NAME=my-app",
        "PROJECT_PATH=/home/dev/src/my-app",
        "PROJECT_TYPE=web-dev",
        "TEMPLATE_VERSION=1.2.0",
        "SETUP_DATE=2026-01-02T10:00:00.123456+00:00",
        "LAST_UPDATE=2026-03-04T11:30:00+00:00",
    ]


def test_store_round_trip_is_string_for_string():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = MetadataStore(StoragePaths(tmpdir))
        written = _record()
        store.write(written)

        read = store.read("my-app")
        assert read == written
        assert read.template_type == "web-dev"
        assert read.setup_date == "2026-01-02T10:00:00.123456+00:00"


def test_read_missing_returns_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = MetadataStore(StoragePaths(tmpdir))
        assert store.read("nope") is None
        assert not store.exists("nope")


def test_parse_ignores_unknown_keys_and_blank_lines():
    content = (
        "PROJECT_NAME=my-app\n"
        "\n"
        "EXTRA=whatever\n"
        "PROJECT_PATH=/srv/my-app\n"
        "PROJECT_TYPE=existing\n"
        "TEMPLATE_VERSION=none\n"
        "SETUP_DATE=2026-01-01T00:00:00+00:00\n"
        "LAST_UPDATE=2026-01-01T00:00:00+00:00\n"
    )
    record = parse_record(content)
    assert record.path == "/srv/my-app"
    assert record.is_existing


def test_parse_splits_on_first_equals_only():
    content = serialize_record(_record(path="/srv/a=b"))
    assert parse_record(content).path == "/srv/a=b"


def test_parse_missing_key_is_malformed():
    with pytest.raises(MalformedMetadataError) as exc:
        parse_record("PROJECT_NAME=my-app\nPROJECT_PATH=/srv/my-app\n", source="info")
    assert "TEMPLATE_VERSION" in str(exc.value)
    assert exc.value.path == "info"


def test_parse_invalid_name_is_malformed():
    content = serialize_record(_record()).replace("PROJECT_NAME=my-app", "PROJECT_NAME=My App")
    with pytest.raises(MalformedMetadataError):
        parse_record(content)


def test_record_rejects_relative_path():
    with pytest.raises(ValueError):
        _record(path="relative/dir")


def test_round_trip_keeps_whitespace_and_empty_values():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = MetadataStore(StoragePaths(tmpdir))
        written = _record(path="/tmp/my app ", template_version="")
        store.write(written)

        read = store.read("my-app")
        assert read == written
        assert read.path == "/tmp/my app "
        assert read.template_version == ""


def test_template_meta_requires_version():
    with pytest.raises(ValueError):
        TemplateMeta(version="")
