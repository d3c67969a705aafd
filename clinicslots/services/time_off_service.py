"""
Application service for adding staff time off.

New ranges are checked against the staff member's approved time off before
they are saved. The check and the save are separate steps; two overlapping
ranges submitted at the same moment can both pass.
"""

from __future__ import annotations

import logging

from ..adapters.protocols import TimeOffStore
from ..domain.conflict_detector import ConflictDetector
from ..domain.exceptions import TimeOffConflict
from ..domain.models import TimeOffRange

logger = logging.getLogger(__name__)


class TimeOffService:
    """Validates and stores time-off ranges."""

    def __init__(self, store: TimeOffStore, conflict_detector: ConflictDetector | None = None) -> None:
        self._store = store
        self._conflict_detector = conflict_detector or ConflictDetector()

    async def create_time_off(self, time_off: TimeOffRange) -> TimeOffRange:
        """
        Save ``time_off`` unless it overlaps approved time off.

        Raises:
            StaffNotFound: If the staff member does not exist for the tenant
            TimeOffConflict: If an approved range shares a blocked moment with it
        """
        await self._store.get_working_days(time_off.staff_id, time_off.tenant_id)

        existing = await self._store.list_approved(
            time_off.staff_id,
            time_off.tenant_id,
            time_off.start_date,
            time_off.effective_end_date,
        )
        clashes = self._conflict_detector.find_overlapping_time_off(time_off, existing)
        if clashes:
            logger.warning(
                "Rejected %s for staff %s: overlaps %s approved range(s)",
                time_off.type.value,
                time_off.staff_id,
                len(clashes),
            )
            raise TimeOffConflict(time_off.staff_id, clashes)

        saved = await self._store.save_time_off(time_off)
        logger.info(
            "Saved %s for staff %s from %s to %s",
            saved.type.value,
            saved.staff_id,
            saved.start_date,
            saved.effective_end_date,
        )
        return saved
