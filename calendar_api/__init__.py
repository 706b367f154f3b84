"""
calendar_api: pass-through calendar operations for the authenticated user.
"""
