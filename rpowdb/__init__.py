"""Hashed B-tree database of 20-byte keys whose operations come with verifiable proofs."""

__version__ = "0.1.0"