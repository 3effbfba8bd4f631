from .ingredients import PostgresIngredientProvider
from .sample_metadata import (
    NullSampleMetadataSink,
    PersistResult,
    PostgresSampleMetadataStore,
    SampleMetadataSink,
)

__all__ = [
    "NullSampleMetadataSink",
    "PersistResult",
    "PostgresIngredientProvider",
    "PostgresSampleMetadataStore",
    "SampleMetadataSink",
]
