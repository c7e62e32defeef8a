"""Core domain package for chatbridge.

Core contains the session lifecycle, dispatch deduplication and health
projections without any chat-network or HTTP-specific code, keeping the
business logic portable across backends.
"""
