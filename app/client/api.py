import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from app.client.context import WidgetContext
from app.models.shared.enums import AttendanceCommand
from app.schemas.hr.attendance_schema import AttendanceResponse, MyStatusResponse

logger = logging.getLogger(__name__)


COMMAND_PATHS = {
    AttendanceCommand.CHECK_IN: "/attendance/check-in",
    AttendanceCommand.CHECK_OUT: "/attendance/check-out",
    AttendanceCommand.START_LUNCH: "/attendance/lunch/start",
    AttendanceCommand.END_LUNCH: "/attendance/lunch/end",
    AttendanceCommand.START_BREAK: "/attendance/break/start",
    AttendanceCommand.END_BREAK: "/attendance/break/end",
}


class AttendanceApiError(Exception):
    """A request to the attendance API failed or was rejected."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class AttendanceApiClient:
    def __init__(self, context: WidgetContext, client: Optional[httpx.AsyncClient] = None):
        self.context = context
        self._client = client or httpx.AsyncClient(base_url=context.base_url, timeout=context.timeout)
        self._owns_client = client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, headers=self.context.headers)
        except httpx.HTTPError as e:
            raise AttendanceApiError(f"Attendance API unreachable: {e}") from e

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise AttendanceApiError(str(detail), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise AttendanceApiError(
                f"Attendance API returned a non-JSON response ({response.headers.get('content-type', 'unknown')})",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise AttendanceApiError(f"Unexpected attendance API response: {e.error_count()} invalid field(s)") from e

    async def get_my_status(self) -> MyStatusResponse:
        data = await self._request("GET", "/attendance/my-status")
        return self._parse(MyStatusResponse, data)

    async def send(self, command: AttendanceCommand, reason: Optional[str] = None) -> AttendanceResponse:
        """Issue a transition command; returns the server's updated record."""
        command = AttendanceCommand(command)
        payload = {"reason": reason} if command == AttendanceCommand.START_BREAK and reason else None
        data = await self._request("POST", COMMAND_PATHS[command], json=payload)
        logger.debug(f"Attendance command {command.value} accepted")
        return self._parse(AttendanceResponse, data)
