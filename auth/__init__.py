"""
auth: User authentication module.

Provides:
  • Signed session token creation & verification
  • Magic-link login, session refresh and profile routes
  • ``get_current_user_id`` FastAPI dependency
  • ``authorize``: the principal / resource-owner gate
"""
