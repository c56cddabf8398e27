from account_service.core.database import Base
from account_service.models.user import FIELD_MAX_LENGTHS, User

__all__ = [
    "Base",
    "User",
    "FIELD_MAX_LENGTHS",
]
