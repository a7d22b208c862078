"""Platform settings data access."""

from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.setting import Setting
from .base_repository import BaseRepository


class SettingsRepository(BaseRepository[Setting]):
    def __init__(self, db: Session):
        super().__init__(db, Setting)

    def get_by_id(self, id: str) -> Optional[Setting]:
        return self.get_by_key(id)

    def get_by_key(self, key: str) -> Optional[Setting]:
        try:
            return self.db.get(Setting, key)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting setting {key}: {str(e)}")
            raise RepositoryException(f"Failed to get setting: {str(e)}")

    def list_all(self) -> List[Setting]:
        return self.db.query(Setting).order_by(Setting.key.asc()).all()

    def upsert(self, key: str, value: str, description: Optional[str] = None) -> Setting:
        try:
            setting = self.db.get(Setting, key)
            if setting is None:
                setting = Setting(key=key, value=value, description=description)
                self.db.add(setting)
            else:
                setting.value = value
                if description is not None:
                    setting.description = description
            self.db.flush()
            return setting
        except SQLAlchemyError as e:
            self.logger.error(f"Error saving setting {key}: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to save setting: {str(e)}")
