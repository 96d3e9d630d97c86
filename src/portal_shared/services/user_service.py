"""User profile store (the subscription-relevant operations)."""

from ..models.user import User, UserUpdate
from ..utils.logging import get_logger
from .dynamodb import DynamoDBService

logger = get_logger(__name__)

USERS_TABLE = "users"
CUSTOMER_ID_INDEX = "stripe_customer_id-index"


class UserService:
    def __init__(self, db: DynamoDBService) -> None:
        self._db = db

    def get_user_by_id(self, user_id: str) -> User | None:
        item = self._db.get_item(USERS_TABLE, {"user_id": user_id})
        return User.from_item(item) if item else None

    def update_user(self, user_id: str, update: UserUpdate) -> User | None:
        """Apply a partial update and return the stored user afterwards."""
        item = self._db.merge_item(USERS_TABLE, {"user_id": user_id}, update.to_item_fields())
        return User.from_item(item) if item else None

    def find_user_by_customer_id(self, customer_id: str) -> User | None:
        """Look up the user that owns a Stripe customer."""
        items = self._db.query_by_gsi(
            USERS_TABLE, CUSTOMER_ID_INDEX, "stripe_customer_id", customer_id, limit=2
        )
        if not items:
            return None
        if len(items) > 1:
            logger.warning("Multiple users share Stripe customer %s", customer_id)
        return User.from_item(items[0])
