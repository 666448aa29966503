import logging
from typing import List

from fastapi import Depends
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Transactional email for subscription requests via SendGrid.
    Without credentials every message is only logged.
    """

    def __init__(self, settings: Settings):
        self.sendgrid_api_key = settings.SENDGRID_API_KEY
        self.sender_email = settings.MAIL_FROM
        self.frontend_url = settings.FRONTEND_URL

        self.enabled = bool(self.sendgrid_api_key and self.sender_email)
        if not self.enabled:
            logger.warning("📧 Email service not configured. Missing SENDGRID_API_KEY or MAIL_FROM.")

    # ============================================================
    # ✅ New request → mess admins (synchronous for BackgroundTasks)
    # ============================================================
    def send_new_request_email(
        self,
        admin_emails: List[str],
        requester_name: str,
        requester_email: str,
        plan: str,
    ) -> bool:
        if not admin_emails:
            return False
        plan_label = plan.replace("_", " ")
        subject = "🔔 New Subscription Request"
        html_content = f"""
        <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <p><strong>{requester_name}</strong> ({requester_email}) has requested
            subscription approval for the <strong>{plan_label}</strong> plan.</p>
            <p><a href="{self.frontend_url}/subscription-requests">Review pending requests</a></p>
        </div>
        """
        return self._send(admin_emails, subject, html_content)

    # ============================================================
    # ✅ Decision → requester
    # ============================================================
    def send_request_decision_email(
        self,
        to_email: str,
        name: str,
        plan: str,
        approved: bool,
        admin_notes: str = "",
    ) -> bool:
        plan_label = plan.replace("_", " ")
        if approved:
            subject = "✅ Subscription Request Approved!"
            body = f"Your subscription has been approved by admin. You now have access to the <strong>{plan_label}</strong> plan."
        else:
            subject = "❌ Subscription Request Rejected"
            body = f"Your subscription request for the <strong>{plan_label}</strong> plan has been rejected. {admin_notes}"
        html_content = f"""
        <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <h2>Hello {name},</h2>
            <p>{body}</p>
        </div>
        """
        return self._send([to_email], subject, html_content)

    def _send(self, to_emails: List[str], subject: str, html_content: str) -> bool:
        if not self.enabled:
            # Development fallback (no SendGrid setup)
            logger.info(f"📨 [Mock Email] To: {', '.join(to_emails)} | {subject}")
            return True
        try:
            message = Mail(
                from_email=self.sender_email,
                to_emails=to_emails,
                subject=subject,
                html_content=html_content,
            )
            sg = SendGridAPIClient(self.sendgrid_api_key)
            response = sg.send(message)
            logger.info(f"✅ Email '{subject}' sent to {len(to_emails)} recipient(s). Status: {response.status_code}")
            return True
        except Exception as e:
            logger.exception("❌ Failed to send email '%s': %s", subject, e)
            return False


def get_email_service(settings: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(settings)
