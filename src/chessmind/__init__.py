"""
ChessMind package bootstrap.

Subpackages:
- domain: Board rules, value network, search, and self-play learning.
- infrastructure: Configuration, SQL/JSON persistence, and weight files.
- interface: Adapters for HTTP, CLI, and telemetry layers.
"""

__all__ = ["interface", "domain", "infrastructure"]
