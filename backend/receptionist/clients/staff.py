"""Staff schedule client (working hours and time off).

Independent of the onboarding state machine; the staff step only
displays and edits these through the scheduling backend.
"""

from receptionist.clients.base import UpstreamClient, UpstreamError
from receptionist.onboarding.errors import PersistFailure
from receptionist.schemas.staff import StaffTimeOff, StaffWorkingHours


class StaffScheduleClient(UpstreamClient):

    async def set_hours(self, staff_id: str, hours: list[StaffWorkingHours]) -> None:
        payload = {
            "staffId": staff_id,
            "hours": [h.model_dump(mode="json", by_alias=True) for h in hours],
        }
        try:
            await self._request("PUT", "/staff/hours", json=payload)
        except UpstreamError as e:
            raise PersistFailure(f"Failed to save working hours: {e.message}") from e

    async def set_time_off(self, staff_id: str, ranges: list[StaffTimeOff]) -> None:
        payload = {
            "staffId": staff_id,
            "ranges": [
                r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in ranges
            ],
        }
        try:
            await self._request("PUT", "/staff/timeoff", json=payload)
        except UpstreamError as e:
            raise PersistFailure(f"Failed to save time off: {e.message}") from e
