"""
Case-similarity core for clinical notes: embedding cache, similarity ranking,
batch indexing and similar-case synthesis.
"""

__version__ = "1.0.0"
