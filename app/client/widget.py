import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from app.client.api import AttendanceApiClient, AttendanceApiError
from app.client.context import WidgetContext
from app.client.projector import Projection, format_duration, format_local_time, project
from app.models.shared.enums import AttendanceCommand, AttendanceOrigin
from app.schemas.hr.attendance_schema import AttendanceResponse, EmployeeSummary
from app.services.hr.attendance_state import TRANSITIONS
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class AttendanceWidget:
    """
    Live attendance display.

    Holds the last snapshot the server confirmed. A tick task re-projects it
    every ``tick_seconds`` and a refresh task re-fetches it every
    ``refresh_seconds``; the tick task only reads the snapshot.
    """

    def __init__(
        self,
        api: AttendanceApiClient,
        context: WidgetContext,
        on_render: Optional[Callable[[Projection], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.api = api
        self.context = context
        self.on_render = on_render
        self.on_error = on_error
        self.clock = clock

        self.snapshot: Optional[AttendanceResponse] = None
        self.employee: Optional[EmployeeSummary] = None
        self.projection: Optional[Projection] = None
        self.last_error: Optional[str] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def available_commands(self) -> List[AttendanceCommand]:
        if self.snapshot is None or self.snapshot.origin == AttendanceOrigin.MANUAL:
            return []
        state = self.snapshot.current_state
        commands = [command for command, states in TRANSITIONS.items() if state in states]
        if self.snapshot.lunch_break is not None and AttendanceCommand.START_LUNCH in commands:
            commands.remove(AttendanceCommand.START_LUNCH)
        return commands

    def render(self) -> Optional[Projection]:
        if self.snapshot is None:
            return None
        self.projection = project(self.snapshot, self.clock())
        if self.on_render:
            self.on_render(self.projection)
        return self.projection

    def status_line(self) -> str:
        """e.g. 'working | worked 2h 5m 0s | break 0h 0m 0s | in since 09:00 AM'"""
        projection = self.render()
        if projection is None:
            return "loading"
        return (
            f"{projection.state.value} | worked {format_duration(projection.working_seconds)} "
            f"| break {format_duration(projection.break_seconds)} "
            f"| in since {format_local_time(projection.last_check_in, self.context.tz)}"
        )

    def _fail(self, action: str, error: AttendanceApiError) -> None:
        self.last_error = error.detail
        logger.warning(f"Attendance {action} failed: {error.detail}")
        if self.on_error:
            self.on_error(error.detail)

    async def refresh(self) -> bool:
        """Fetch a fresh snapshot; on failure keep showing the last one."""
        try:
            status = await self.api.get_my_status()
        except AttendanceApiError as e:
            self._fail("refresh", e)
            return False

        self.snapshot = status.attendance
        self.employee = status.employee
        self.last_error = None
        self.render()
        return True

    async def perform(self, command: AttendanceCommand, reason: Optional[str] = None) -> bool:
        """Send a command; the snapshot changes only once the server confirms it."""
        try:
            record = await self.api.send(command, reason=reason)
        except AttendanceApiError as e:
            self._fail(AttendanceCommand(command).value, e)
            return False

        self.snapshot = record
        self.last_error = None
        self.render()
        return True

    async def check_in(self) -> bool:
        return await self.perform(AttendanceCommand.CHECK_IN)

    async def check_out(self) -> bool:
        return await self.perform(AttendanceCommand.CHECK_OUT)

    async def start_lunch(self) -> bool:
        return await self.perform(AttendanceCommand.START_LUNCH)

    async def end_lunch(self) -> bool:
        return await self.perform(AttendanceCommand.END_LUNCH)

    async def start_break(self, reason: Optional[str] = None) -> bool:
        return await self.perform(AttendanceCommand.START_BREAK, reason=reason)

    async def end_break(self) -> bool:
        return await self.perform(AttendanceCommand.END_BREAK)

    # ---------- Scheduling ----------
    async def _tick_loop(self):
        while True:
            try:
                self.render()
            except Exception as e:
                logger.error(f"Attendance render failed: {e}")
            await asyncio.sleep(self.context.tick_seconds)

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.context.refresh_seconds)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Attendance refresh crashed: {e}")

    async def start(self):
        if self.running:
            return
        await self.refresh()
        self._tasks = [
            asyncio.create_task(self._tick_loop()),
            asyncio.create_task(self._refresh_loop()),
        ]
        logger.info(f"Attendance widget started (tick {self.context.tick_seconds}s, refresh {self.context.refresh_seconds}s)")

    async def stop(self):
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()
