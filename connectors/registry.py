"""
ConnectorRegistry: provides access to the configured provider connectors.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from connectors.base import BaseConnector
from connectors.google import GoogleConnector

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Singleton registry for OAuth connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def discover(self) -> None:
        """Register every configured connector."""
        if self._discovered:
            return
        for conn in (GoogleConnector(),):
            self.register(conn)
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        if not connector.is_configured():
            logger.warning(
                "Connector %s skipped: not configured (missing client_id/secret)",
                connector.provider_name,
            )
            return
        self._connectors[connector.provider_name] = connector
        logger.info("Connector registered: %s (%s)", connector.display_name, connector.provider_name)

    def get(self, provider: str) -> Optional[BaseConnector]:
        self.discover()
        return self._connectors.get(provider)

    def list_configured(self) -> List[str]:
        self.discover()
        return list(self._connectors.keys())
