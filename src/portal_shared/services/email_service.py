"""Transactional email via Resend.

Every send is best-effort: failures are logged and reported as ``False``,
never raised, so a notification problem cannot fail webhook processing.
"""

import html
from typing import Any

import resend

from ..utils.logging import get_logger

logger = get_logger(__name__)

TIER_LABELS = {"basic": "Basic", "pro": "Pro", "business": "Business"}


def format_pounds(amount: float) -> str:
    """Format a major-unit amount for display, e.g. 10.5 -> "£10.50"."""
    return f"£{amount:,.2f}"


class EmailService:
    """Sends the billing notifications for subscriptions, payments and payouts."""

    def __init__(self, api_key: str | None, from_address: str, app_url: str) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._app_url = app_url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._app_url}{path}"

    def _send_email(self, to: str, subject: str, body: str) -> bool:
        """Send one email through the Resend API.

        Returns:
            bool: True on success, False on failure
        """
        if not self._api_key:
            logger.warning("RESEND_API_KEY is not set; skipping email %r", subject)
            return False

        try:
            resend.api_key = self._api_key
            response: Any = resend.Emails.send(
                {
                    "from": self._from_address,
                    "to": to,
                    "subject": subject,
                    "html": body,
                }
            )
        except Exception as exc:
            logger.error("Failed to send email (%s) to %s: %s", subject, to, exc, exc_info=True)
            return False

        # Resend returns a dict with an 'id' on success
        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        if not email_id:
            logger.error("Email send returned invalid response: %r", response)
            return False
        logger.info("Email (%s) sent to %s (id: %s)", subject, to, email_id)
        return True

    def send_subscription_upgraded_email(self, to: str, name: str, tier: str) -> bool:
        label = TIER_LABELS.get(tier, tier.title())
        subject = f"Welcome to Plumbers Portal {label}"
        body = f"""
        <p>Hi {html.escape(name)},</p>
        <p>Your subscription has been upgraded to <strong>{label}</strong>.
        Your new features are available straight away.</p>
        <p><a href="{self._url('/dashboard/billing')}">View your plan</a></p>
        """
        return self._send_email(to, subject, body)

    def send_deposit_paid_email(
        self,
        to: str,
        user_type: str,
        job_title: str,
        deposit_amount: float,
        name: str | None = None,
    ) -> bool:
        """Notify the customer or tradesperson that a job deposit has been paid.

        Args:
            to: Recipient email address
            user_type: "customer" or "tradesperson"
            job_title: Title of the job
            deposit_amount: Amount in pounds (major units)
            name: Recipient's display name
        """
        amount = format_pounds(deposit_amount)
        title = html.escape(job_title)
        if user_type == "tradesperson":
            subject = f"Deposit received for {job_title}"
            line = f"The customer has paid a deposit of {amount} for <strong>{title}</strong>. You can now schedule the work."
        else:
            subject = f"Your deposit for {job_title} is confirmed"
            line = f"Thanks, we have received your deposit of {amount} for <strong>{title}</strong>."
        body = f"""
        <p>Hi {html.escape(name or 'there')},</p>
        <p>{line}</p>
        <p><a href="{self._url('/dashboard')}">Go to your dashboard</a></p>
        """
        return self._send_email(to, subject, body)

    def send_job_complete_email(self, to: str, job_id: str, name: str | None = None) -> bool:
        subject = "Your job is complete"
        body = f"""
        <p>Hi {html.escape(name or 'there')},</p>
        <p>The final payment has been made and your job is now complete.
        Please take a moment to leave a review.</p>
        <p><a href="{self._url(f'/dashboard/customer/jobs/{job_id}')}">View job</a></p>
        """
        return self._send_email(to, subject, body)

    def send_final_payment_paid_email(
        self,
        to: str,
        job_title: str,
        final_amount: float,
        name: str | None = None,
    ) -> bool:
        subject = f"Final payment received for {job_title}"
        body = f"""
        <p>Hi {html.escape(name or 'there')},</p>
        <p>The final payment of {format_pounds(final_amount)} for
        <strong>{html.escape(job_title)}</strong> has been received.</p>
        <p><a href="{self._url('/dashboard')}">Go to your dashboard</a></p>
        """
        return self._send_email(to, subject, body)

    def send_stripe_onboarding_success_email(self, to: str, name: str) -> bool:
        subject = "You're ready to get paid"
        body = f"""
        <p>Hi {html.escape(name)},</p>
        <p>Your Stripe account is set up. Customers can now pay deposits and
        final payments straight to you.</p>
        <p><a href="{self._url('/dashboard/tradesperson')}">Go to your dashboard</a></p>
        """
        return self._send_email(to, subject, body)
