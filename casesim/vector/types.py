"""
Value types exchanged with embedding providers.
"""

from dataclasses import dataclass
from typing import List


@dataclass
class EmbeddingResult:
    """A freshly generated embedding."""

    vector: List[float]
    """The vector components, in model order"""

    model: str
    """Identifier of the model/version that produced the vector"""

    dimensions: int
    """Number of components; always equals len(vector)"""
