"""
Tests for the Token Pricing package.

This package contains tests for:
- Two-tier cache store and degraded mode
- Ticker matching and record normalization
- Provider adapters and error mapping
- Price resolution, fallback and request coalescing
- Configuration and ticker validation
"""
