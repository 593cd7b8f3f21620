"""
S3 remote build cache.

Exports cache layers as content-addressed blobs plus named manifests to an
S3 bucket, keeps blobs alive by touching them in place, and imports
manifests back as lazily readable layer chains.
"""
__version__ = "0.1.0"
