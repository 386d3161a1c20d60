"""Cache Module - Caching services."""
from core.cache.reliability_cache import ReliabilityCache

__all__ = ['ReliabilityCache']
