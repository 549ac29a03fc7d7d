from rdmonitor.database import Base
from rdmonitor.models.setting import StoredSetting

__all__ = ["Base", "StoredSetting"]
