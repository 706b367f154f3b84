"""
Authorization gate: the single check between a principal and a credential.

Every code path that resolves an ``Integration`` (read, update, or client
construction) calls :func:`authorize` first.  ``principal_id`` must come from
a verified session token (``auth.dependencies.get_current_user_id``), never
from a request body, query string or path.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Union

from utils.errors import Unauthenticated, Unauthorized

logger = logging.getLogger(__name__)

UserRef = Union[str, uuid.UUID]


def _normalize(value: UserRef) -> str:
    return str(value).strip().lower()


def authorize(principal_id: Optional[UserRef], resource_owner_id: Optional[UserRef]) -> str:
    """
    Allow the call only when the principal owns the resource.

    Returns the normalised owner id on success.

    Raises
    ------
    Unauthenticated
        No verified principal is present.
    Unauthorized
        The principal is not the resource owner (or the owner is unknown).
    """
    if principal_id is None or not _normalize(principal_id):
        logger.warning("authz deny: no principal (target=%s)", resource_owner_id)
        raise Unauthenticated()

    principal = _normalize(principal_id)
    owner = _normalize(resource_owner_id) if resource_owner_id is not None else ""
    if principal != owner:
        logger.warning("authz deny: principal=%s target=%s", principal, owner or "<none>")
        raise Unauthorized()

    logger.debug("authz allow: principal=%s", principal)
    return owner
