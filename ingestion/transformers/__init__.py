"""Stateless parsing helpers shared by every source adapter."""

from ingestion.transformers.normalizer import GrantNormalizer

__all__ = ["GrantNormalizer"]
