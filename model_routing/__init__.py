"""Multi-tenant LLM model routing service."""

__version__ = "0.1.0"
