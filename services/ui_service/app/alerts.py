# services/ui_service/app/alerts.py
"""
Transient notifications for the upload page.

Each call to `AlertPresenter.show` appends one alert to the container. After
`timeout` seconds the alert starts fading, and `fade_duration` seconds later it is
detached. Every alert has its own timers; alerts are never merged, queued or capped.
`close()` cancels all pending timers and empties the container.
"""
import asyncio
import html
import itertools
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional

from core.config import settings, logger as core_logger

logger = core_logger.getChild("UIService").getChild("Alerts")

Severity = Literal["error", "success", "info"]

ALERT_BACKGROUNDS: Dict[str, str] = {
    "error": "red",
    "success": "green",
    "info": "#3089cf",
}
ALERT_TEXT_COLOR = "#FFFFFF"
CONTAINER_ID = "oc-alert-container"


@dataclass
class Alert:
    id: int
    message: str
    severity: str
    background: str
    fading: bool = False


class AlertPresenter:
    def __init__(self, timeout: Optional[float] = None, fade_duration: Optional[float] = None):
        self.timeout = settings.ALERT_TIMEOUT_SECONDS if timeout is None else timeout
        self.fade_duration = settings.ALERT_FADE_SECONDS if fade_duration is None else fade_duration
        self._alerts: Dict[int, Alert] = {}
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._ids = itertools.count(1)

    @property
    def alerts(self) -> List[Alert]:
        """Visible alerts, oldest first (fading ones included)."""
        return list(self._alerts.values())

    def show(self, message: str, severity: Severity = "info") -> Alert:
        """Appends an alert and schedules its removal. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        alert = Alert(
            id=next(self._ids),
            message=str(message),
            severity=severity,
            background=ALERT_BACKGROUNDS.get(severity, ALERT_BACKGROUNDS["info"]),
        )
        self._alerts[alert.id] = alert
        self._timers[alert.id] = loop.call_later(self.timeout, self._fade, alert.id)
        logger.debug(f"Alert {alert.id} shown ({severity}): {alert.message}")
        return alert

    def _fade(self, alert_id: int) -> None:
        alert = self._alerts.get(alert_id)
        if alert is None:
            return
        alert.fading = True
        loop = asyncio.get_running_loop()
        self._timers[alert_id] = loop.call_later(self.fade_duration, self._detach, alert_id)

    def _detach(self, alert_id: int) -> None:
        self._timers.pop(alert_id, None)
        self._alerts.pop(alert_id, None)

    def dismiss(self, alert_id: int) -> None:
        """Removes one alert immediately."""
        handle = self._timers.pop(alert_id, None)
        if handle is not None:
            handle.cancel()
        self._alerts.pop(alert_id, None)

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._alerts.clear()

    def render_html(self) -> str:
        parts = [f'<div id="{CONTAINER_ID}">']
        for alert in self._alerts.values():
            css_class = "oc-alert-pop-up oc-alert-fading" if alert.fading else "oc-alert-pop-up"
            parts.append(
                f'<div class="{css_class}" data-alert-id="{alert.id}" '
                f'style="background: {alert.background}; color: {ALERT_TEXT_COLOR};">'
                f'{html.escape(alert.message)}</div>'
            )
        parts.append("</div>")
        return "".join(parts)


# CSS for the fixed-position container and the fade transition
ALERT_CSS = f"""
#{CONTAINER_ID} {{ position: fixed; top: 20px; right: 20px; z-index: 1000; max-width: 420px; }}
.oc-alert-pop-up {{ padding: 10px 16px; margin-bottom: 8px; border-radius: 4px; opacity: 1; transition: opacity {settings.ALERT_FADE_SECONDS}s ease-out; word-break: break-all; }}
.oc-alert-fading {{ opacity: 0; }}
"""
