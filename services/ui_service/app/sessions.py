# services/ui_service/app/sessions.py
"""
Per-browser state for the upload page.

Every Gradio session gets its own `AlertPresenter` and `UploadClient`, so alerts
raised by one visitor's uploads are never rendered for another. All sessions share
one `httpx.AsyncClient` connection pool to the upload service.
"""
from typing import Dict, Optional

import httpx

from core.config import settings, logger as core_logger
from .alerts import AlertPresenter, CONTAINER_ID
from .client import UploadClient

logger = core_logger.getChild("UIService").getChild("Sessions")

EMPTY_ALERT_CONTAINER = f'<div id="{CONTAINER_ID}"></div>'


class UploadSessions:
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            base_url=settings.UPLOAD_SERVICE_URL,
            timeout=settings.UPLOAD_CLIENT_TIMEOUT,
        )
        self._clients: Dict[str, UploadClient] = {}

    def __len__(self) -> int:
        return len(self._clients)

    def client_for(self, session_id: str) -> UploadClient:
        """Returns the session's upload client, creating it (and its presenter) on first use."""
        client = self._clients.get(session_id)
        if client is None:
            client = UploadClient(AlertPresenter(), http_client=self.http_client)
            self._clients[session_id] = client
            logger.debug(f"Session {session_id} opened ({len(self._clients)} active)")
        return client

    def render(self, session_id: str) -> str:
        client = self._clients.get(session_id)
        if client is None:
            return EMPTY_ALERT_CONTAINER
        return client.presenter.render_html()

    def end(self, session_id: str) -> None:
        """Drops a session and cancels its pending alert timers."""
        client = self._clients.pop(session_id, None)
        if client is not None:
            client.presenter.close()
            logger.debug(f"Session {session_id} closed ({len(self._clients)} active)")

    async def aclose(self) -> None:
        for session_id in list(self._clients):
            self.end(session_id)
        if self._owns_client:
            await self.http_client.aclose()
