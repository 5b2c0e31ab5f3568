from .extractor import (
    DicomAttributeExtractor,
    MetadataExtractor,
    clean_value,
)

__all__ = [
    "DicomAttributeExtractor",
    "MetadataExtractor",
    "clean_value",
]
