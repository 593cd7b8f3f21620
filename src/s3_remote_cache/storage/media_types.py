"""
Media types, annotation keys and store constants.

Single source of truth for the identifiers shared by the exporter, the
importer and the manifest codec.
"""
from __future__ import annotations

# OCI layer media types produced by the build system
OCI_LAYER = "application/vnd.oci.image.layer.v1.tar"
OCI_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"

# Descriptor annotations carrying layer provenance
UNCOMPRESSED_ANNOTATION = "containerd.io/uncompressed"
CREATED_AT_ANNOTATION = "buildkit/createdat"

# Object metadata stamped on a touch copy
UPDATED_AT_METADATA = "updated-at"

# CopyObject / UploadPartCopy ceiling (5 GiB)
MAX_COPY_OBJECT_SIZE = 5 * 1024 * 1024 * 1024


__all__ = [
    "OCI_LAYER",
    "OCI_LAYER_GZIP",
    "UNCOMPRESSED_ANNOTATION",
    "CREATED_AT_ANNOTATION",
    "UPDATED_AT_METADATA",
    "MAX_COPY_OBJECT_SIZE",
]
