"""
Tests for the manifest codec and layer/descriptor mapping.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from s3_remote_cache.manifest import (
    decode_manifest, encode_manifest, layer_annotations_from_descriptor, to_descriptor_provider_pair
)
from s3_remote_cache.models import (
    CacheConfig, CacheLayer, Descriptor, LayerAnnotations, format_rfc3339, is_digest, parse_rfc3339
)
from s3_remote_cache.storage.errors import CorruptCacheError, CorruptManifestError
from s3_remote_cache.storage.media_types import CREATED_AT_ANNOTATION, UNCOMPRESSED_ANNOTATION

BLOB = "sha256:" + "a" * 64
DIFF = "sha256:" + "b" * 64


def _manifest_doc(**layer_annotations):
    annotations = {"mediaType": "application/vnd.oci.image.layer.v1.tar+gzip", "diffID": DIFF, "size": 42}
    annotations.update(layer_annotations)
    return {
        "layers": [{"blob": BLOB, "parent": -1, "annotations": annotations}],
        "records": [{"digest": "sha256:" + "c" * 64, "results": [{"layer": 0}]}],
    }


class TestDigestsAndTimestamps:
    """Test digest syntax checks and RFC 3339 helpers."""

    @pytest.mark.parametrize("value,expected", [
        (BLOB, True),
        ("sha256:abc", False),
        ("sha256:" + "A" * 64, False),
        ("sha512:" + "f" * 128, True),
        ("nocolon", False),
        ("", False),
    ])
    def test_is_digest(self, value, expected):
        assert is_digest(value) is expected

    def test_parse_truncates_nanoseconds(self):
        parsed = parse_rfc3339("2024-05-06T07:08:09.123456789Z")
        assert parsed == datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)

    def test_parse_converts_offsets_to_utc(self):
        parsed = parse_rfc3339("2024-05-06T09:08:09+02:00")
        assert parsed == datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_rfc3339("yesterday")

    def test_format_uses_z_suffix(self):
        assert format_rfc3339(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2024-01-02T03:04:05Z"


class TestEncodeDecode:
    """Test manifest encoding and strict decoding."""

    def test_decode_valid_manifest(self):
        config = decode_manifest(json.dumps(_manifest_doc(createdAt="2024-01-02T03:04:05Z")).encode())
        layer = config.layers[0]
        assert layer.blob == BLOB
        assert layer.parent == -1
        assert layer.annotations.diff_id == DIFF
        assert layer.annotations.size == 42
        assert layer.annotations.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert config.records[0]["results"] == [{"layer": 0}]

    def test_encode_then_decode_preserves_document(self):
        doc = _manifest_doc(createdAt="2024-01-02T03:04:05Z")
        encoded = encode_manifest(decode_manifest(json.dumps(doc)))
        assert json.loads(encoded) == doc

    def test_encode_omits_unset_created_at(self):
        encoded = json.loads(encode_manifest(decode_manifest(json.dumps(_manifest_doc()))))
        assert "createdAt" not in encoded["layers"][0]["annotations"]

    def test_records_and_unknown_fields_pass_through(self):
        doc = _manifest_doc()
        doc["records"][0]["note"] = None
        doc["future"] = {"x": 1}
        encoded = json.loads(encode_manifest(decode_manifest(json.dumps(doc))))
        assert encoded["records"] == doc["records"]
        assert encoded["future"] == {"x": 1}

    def test_missing_parent_defaults_to_zero(self):
        doc = _manifest_doc()
        del doc["layers"][0]["parent"]
        assert decode_manifest(json.dumps(doc)).layers[0].parent == 0

    def test_go_zero_time_decodes_as_absent(self):
        config = decode_manifest(json.dumps(_manifest_doc(createdAt="0001-01-01T00:00:00Z")))
        assert config.layers[0].annotations.created_at is None

    def test_surrounding_whitespace_is_accepted(self):
        payload = b"\n  " + json.dumps(_manifest_doc()).encode() + b"\n\t "
        assert len(decode_manifest(payload).layers) == 1

    @pytest.mark.parametrize("payload", [
        b'{"layers":[]}{"layers":[]}',
        b'{"layers":[]} x',
        b'{"layers":[]}]',
    ])
    def test_trailing_data_rejected(self, payload):
        with pytest.raises(CorruptManifestError, match="unexpected data after JSON object"):
            decode_manifest(payload)

    @pytest.mark.parametrize("payload", [
        b"",
        b"not json",
        b'{"layers": [',
        b"[]",
        b'"text"',
        b"\xff\xfe",
        b'{"layers": [{"blob": "not-a-digest"}]}',
        b'{"layers": "nope"}',
    ])
    def test_invalid_documents_rejected(self, payload):
        with pytest.raises(CorruptManifestError):
            decode_manifest(payload)

    def test_empty_object_is_an_empty_manifest(self):
        config = decode_manifest(b"{}")
        assert config.layers == [] and config.records == []


class TestDescriptorMapping:
    """Test layer <-> descriptor conversions."""

    def test_layer_to_pair(self):
        layer = CacheLayer(blob=BLOB, parent=-1, annotations=LayerAnnotations(
            media_type="application/vnd.oci.image.layer.v1.tar+gzip",
            diff_id=DIFF,
            size=42,
            created_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        ))
        provider = object()
        pair = to_descriptor_provider_pair(layer, provider)
        assert pair.provider is provider
        assert pair.descriptor.digest == BLOB
        assert pair.descriptor.size == 42
        assert pair.descriptor.media_type == "application/vnd.oci.image.layer.v1.tar+gzip"
        assert pair.descriptor.annotations == {
            UNCOMPRESSED_ANNOTATION: DIFF,
            CREATED_AT_ANNOTATION: "2024-01-02T03:04:05Z",
        }

    def test_layer_without_created_at_has_no_created_annotation(self):
        layer = CacheLayer(blob=BLOB, annotations=LayerAnnotations(diff_id=DIFF, size=1))
        pair = to_descriptor_provider_pair(layer, object())
        assert CREATED_AT_ANNOTATION not in pair.descriptor.annotations

    def test_layer_without_annotations_is_corrupt(self):
        with pytest.raises(CorruptCacheError, match="missing annotations"):
            to_descriptor_provider_pair(CacheLayer(blob=BLOB), object())

    def test_layer_without_diff_id_is_corrupt(self):
        layer = CacheLayer(blob=BLOB, annotations=LayerAnnotations(size=1))
        with pytest.raises(CorruptCacheError, match="missing diffid"):
            to_descriptor_provider_pair(layer, object())

    def test_annotations_from_descriptor(self):
        descriptor = Descriptor(media_type="m", digest=BLOB, size=7, annotations={
            UNCOMPRESSED_ANNOTATION: DIFF,
            CREATED_AT_ANNOTATION: "2024-01-02T03:04:05.5Z",
        })
        ann = layer_annotations_from_descriptor(descriptor)
        assert ann.diff_id == DIFF
        assert ann.size == 7
        assert ann.media_type == "m"
        assert ann.created_at == datetime(2024, 1, 2, 3, 4, 5, 500000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("annotations", [
        None,
        {},
        {UNCOMPRESSED_ANNOTATION: "not-a-digest"},
        {UNCOMPRESSED_ANNOTATION: DIFF, CREATED_AT_ANNOTATION: "later"},
    ])
    def test_bad_descriptor_annotations_are_corrupt(self, annotations):
        descriptor = Descriptor(digest=BLOB, size=1, annotations=annotations)
        with pytest.raises(CorruptCacheError):
            layer_annotations_from_descriptor(descriptor)

    def test_config_defaults(self):
        config = CacheConfig()
        assert config.layers == [] and config.records == []
