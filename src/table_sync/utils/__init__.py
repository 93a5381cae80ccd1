"""
Utility modules for table-sync

Provides:
- sql_safety: identifier validation and dialect quoting
- logging: structured logging setup
- tracing: OpenTelemetry spans
- metrics: Prometheus metrics
- vault_client: HashiCorp Vault integration for credentials
"""

__all__ = ["sql_safety", "logging", "tracing", "metrics", "vault_client"]
