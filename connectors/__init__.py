"""
connectors: OAuth credential custody for the calendar provider.

Provides:
  • OAuth2 auth-URL generation and code → token provisioning
  • Per-user token storage (Fernet-encrypted at rest)
  • Freshness checks with pre-emptive and reactive refresh
  • Request-scoped calendar clients built from fresh credentials
"""
