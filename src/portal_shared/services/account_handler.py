"""Connected-account (tradesperson payout) onboarding updates."""

from ..models.enums import ProcessingResult
from ..models.stripe_events import ConnectedAccount
from ..models.stripe_webhook import HandlerResult
from ..models.user import UserUpdate
from ..utils.logging import get_logger
from .email_service import EmailService
from .resilient_write import ResilientWriter
from .user_service import UserService

logger = get_logger(__name__)


class AccountHandler:
    def __init__(self, users: UserService, emails: EmailService, writer: ResilientWriter) -> None:
        self._users = users
        self._emails = emails
        self._writer = writer

    def handle_account_updated(self, account: ConnectedAccount) -> HandlerResult:
        """Sync onboarding flags; email the user the first time they are complete."""
        user_id = account.metadata.get("userId")
        if not user_id:
            logger.warning("account.updated for %s has no metadata.userId", account.id)
            return ProcessingResult.SKIPPED, "Missing userId in account metadata"

        user = self._users.get_user_by_id(user_id)
        if user is None:
            logger.warning("No user %s for account %s", user_id, account.id)
            return ProcessingResult.SKIPPED, f"User {user_id} not found"

        onboarding_complete = account.onboarding_complete
        charges_enabled = bool(account.charges_enabled)
        if (
            user.stripe_onboarding_complete == onboarding_complete
            and user.stripe_charges_enabled == charges_enabled
        ):
            logger.info("No onboarding change for user %s", user_id)
            return ProcessingResult.SKIPPED, "No change"

        self._writer.execute(
            lambda: self._users.update_user(
                user_id,
                UserUpdate(
                    stripe_onboarding_complete=onboarding_complete,
                    stripe_charges_enabled=charges_enabled,
                ),
            ),
            f"Update onboarding status for user {user_id}",
        )

        if onboarding_complete and not user.stripe_onboarding_complete and user.email:
            self._emails.send_stripe_onboarding_success_email(user.email, user.display_name)
        return ProcessingResult.SUCCESS, None
