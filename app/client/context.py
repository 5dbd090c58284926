from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Dict

from app.core.config import settings
from app.utils.time_utils import get_server_timezone


@dataclass
class WidgetContext:
    """Everything the attendance widget needs to talk to the API and render."""
    base_url: str
    token: str
    tz: tzinfo = field(default_factory=get_server_timezone)
    tick_seconds: float = 1.0
    refresh_seconds: float = 30.0
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, token: str) -> "WidgetContext":
        return cls(
            base_url=settings.API_BASE_URL,
            token=token,
            tick_seconds=settings.WIDGET_TICK_SECONDS,
            refresh_seconds=settings.WIDGET_REFRESH_SECONDS,
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json"
        }
