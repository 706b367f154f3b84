"""
Integration API routes: OAuth connect/callback, list, update, disconnect.

Route prefix: /api/v1/integrations
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from datetime import datetime
from html import escape
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from auth.gate import authorize
from config.settings import config
from connectors.base import BaseConnector
from connectors.models import Integration
from connectors.provisioning import Provisioner
from connectors.registry import ConnectorRegistry
from connectors.store import IntegrationStore, TokenUpdate
from utils.errors import AppError, InvalidState, NotConnected

logger = logging.getLogger(__name__)

router = APIRouter(tags=["integrations"])


# ── State token helpers (CSRF protection) ──────────────────────────────


def _state_sig(raw: bytes) -> str:
    return hmac.new(config.oauth_state_secret.encode(), raw, hashlib.sha256).hexdigest()[:32]


def create_state(user_id: str) -> str:
    """Create an opaque state string encoding user_id + expiry."""
    payload = json.dumps(
        {"user_id": user_id, "exp": int(time.time()) + config.oauth_state_ttl_seconds}
    )
    raw = payload.encode()
    return urlsafe_b64encode(raw).decode() + "." + _state_sig(raw)


def verify_state(state: str) -> str:
    """Verify state token, return user_id.  Raises ``InvalidState``."""
    try:
        encoded, sig = state.split(".", 1)
        raw = urlsafe_b64decode(encoded.encode())
        if not hmac.compare_digest(sig, _state_sig(raw)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("state expired")
        return payload["user_id"]
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        logger.warning("Rejected OAuth state: %s", exc)
        raise InvalidState()


# ── Helpers ────────────────────────────────────────────────────────────


class IntegrationUpdateRequest(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


def _connector_or_404(provider: str) -> BaseConnector:
    connector = ConnectorRegistry().get(provider)
    if connector is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{provider}' not found or not configured",
        )
    return connector


def _integration_out(integration: Integration) -> Dict[str, Any]:
    """Public view of an integration.  Token values never leave the server."""
    return {
        "name": integration.name,
        "connected": True,
        "account_email": integration.account_email,
        "scopes": integration.scopes or [],
        "expires_at": integration.expires_at.isoformat() if integration.expires_at else None,
        "created_at": integration.created_at.isoformat() if integration.created_at else None,
        "updated_at": integration.updated_at.isoformat() if integration.updated_at else None,
    }


async def _owned_integration(
    store: IntegrationStore, principal_id: str, name: str
) -> Integration:
    integration = await store.find(principal_id, name)
    if integration is None:
        raise NotConnected()
    authorize(principal_id, integration.user_id)
    return integration


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("")
async def list_integrations(
    name: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """
    Without ``name``: every integration of the caller keyed by provider.
    With ``name``: that single integration, or 404.
    """
    store = IntegrationStore(session)
    if name:
        integration = await _owned_integration(store, user_id, name)
        return {"integration": _integration_out(integration)}

    result: Dict[str, Any] = {}
    for integration in await store.find_all(user_id):
        authorize(user_id, integration.user_id)
        result[integration.name] = _integration_out(integration)
    return result


@router.patch("/{name}")
async def update_integration(
    name: str,
    req: IntegrationUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Overwrite the caller's own stored tokens."""
    store = IntegrationStore(session)
    integration = await _owned_integration(store, user_id, name)
    update = TokenUpdate(
        access_token=req.access_token,
        refresh_token=req.refresh_token,
        expires_at=req.expires_at,
    )
    integration = await store.upsert_tokens(integration.integration_id, update)
    return {"integration": _integration_out(integration)}


@router.get("/{provider}/auth-url")
async def get_auth_url(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    """
    Get the OAuth authorization URL for a provider.

    Frontend should open this URL in a popup window.
    """
    connector = _connector_or_404(provider)
    provisioner = Provisioner(session, connector)
    auth_url = provisioner.build_authorization_url(None, create_state(user_id))
    return {"auth_url": auth_url, "provider": provider}


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str = Query(...),
    state: str = Query(...),
    session: AsyncSession = Depends(db_session),
) -> HTMLResponse:
    """
    OAuth callback: the provider redirects here after consent.

    The user is taken from the signed ``state`` created for the
    authenticated caller of ``auth-url``, never from the query itself.
    """
    connector = _connector_or_404(provider)
    try:
        user_id = verify_state(state)
        await Provisioner(session, connector).provision(user_id, provider, code)
    except AppError as exc:
        logger.warning("OAuth callback for %s failed: %s", provider, exc.code)
        return HTMLResponse(
            content=_callback_html(success=False, message=exc.message, provider=provider),
            status_code=exc.status_code,
        )

    logger.info("OAuth connected: user=%s provider=%s", user_id, provider)
    return HTMLResponse(
        content=_callback_html(
            success=True,
            message=f"Connected {connector.display_name}",
            provider=provider,
        ),
        status_code=200,
    )


@router.delete("/{name}")
async def disconnect_integration(
    name: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Revoke (best effort) and delete the caller's integration."""
    store = IntegrationStore(session)
    integration = await _owned_integration(store, user_id, name)

    connector = ConnectorRegistry().get(name)
    if connector is not None:
        token = integration.refresh_token or integration.access_token
        if not await connector.revoke_token(token):
            logger.warning("Provider did not confirm revocation for %s/%s", name, user_id)

    await store.delete(integration)
    logger.info("Disconnected %s for user %s", name, user_id)
    return {"status": "disconnected", "name": name}


# ── Callback HTML template ─────────────────────────────────────────────


def _callback_html(success: bool, message: str, provider: str) -> str:
    """
    Small HTML page shown in the OAuth popup after redirect.
    Sends a postMessage to the opener and auto-closes.
    """
    status_text = "Connected!" if success else "Failed"
    color = "#00d992" if success else "#ef4444"
    payload = json.dumps(
        {"type": "oauth-callback", "provider": provider, "success": success, "message": message}
    )

    return f"""<!DOCTYPE html>
<html>
<head>
    <title>{escape(provider)} {status_text}</title>
    <style>
        body {{
            font-family: system-ui, sans-serif;
            display: flex; align-items: center; justify-content: center;
            height: 100vh; margin: 0;
        }}
        h2 {{ color: {color}; }}
    </style>
</head>
<body>
    <div>
        <h2>{status_text}</h2>
        <p>{escape(message)}</p>
        <p>This window will close automatically…</p>
    </div>
    <script>
        if (window.opener) {{
            window.opener.postMessage({payload}, '*');
        }}
        setTimeout(() => window.close(), 2000);
    </script>
</body>
</html>"""
