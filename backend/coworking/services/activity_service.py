"""
Activity log service.

Logging an activity is always best-effort: ``log`` reports an outcome tag
instead of raising, so a failed insert never undoes the action it records.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import RECENT_ACTIVITY_LIMIT
from ..core.enums import ActivityType, SideEffectOutcome
from ..models.activity import Activity
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class ActivityService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_activity_repository(db)

    def log(
        self,
        user_id: str,
        activity_type: ActivityType,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SideEffectOutcome:
        """Append an activity in its own transaction and report the outcome."""
        try:
            with self.transaction():
                self.repository.create(
                    user_id=user_id,
                    type=activity_type.value,
                    description=description,
                    activity_metadata=metadata or {},
                )
            return SideEffectOutcome.OK
        except Exception as e:
            self.logger.error(
                f"Failed to log {activity_type.value} activity for user {user_id}: {str(e)}",
                exc_info=True,
            )
            return SideEffectOutcome.FAILED

    @BaseService.measure_operation("get_user_activities")
    def get_recent(self, user_id: str, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Activity]:
        return self.repository.get_recent_for_user(user_id, limit=limit)
