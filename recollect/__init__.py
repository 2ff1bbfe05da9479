"""
recollect - Long-term memory for conversational assistants.

This package stores memories as durable records, finds them again by
meaning through an HNSW vector index, and keeps the collection bounded
with importance- and recency-based eviction.
"""

__version__ = "1.0.0"
