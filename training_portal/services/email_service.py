from typing import Optional
import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content
import logging
from datetime import datetime
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path

from ..core.config import settings

logger = logging.getLogger(__name__)

ID_TYPE_LABELS = {
    "staff": "Staff",
    "resource_person": "Resource Person",
}

class EmailService:
    """Email service using SendGrid for transactional emails"""

    def __init__(self):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.mock_mode = settings.EMAIL_MOCK_MODE

        if not self.mock_mode and self.api_key:
            self.sg = sendgrid.SendGridAPIClient(api_key=self.api_key)
        else:
            self.sg = None
            logger.info("Email service running in MOCK mode")

        template_dir = Path(__file__).parent.parent / 'templates' / 'email'
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

    async def send_email(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_content: str,
        plain_content: Optional[str] = None
    ) -> bool:
        """Send an email using SendGrid"""
        try:
            if self.mock_mode:
                logger.info(f"[MOCK EMAIL] To: {to_name or ''} <{to_email}>")
                logger.info(f"[MOCK EMAIL] Subject: {subject}")
                logger.info(f"[MOCK EMAIL] HTML Content: {html_content[:200]}...")
                return True

            if not self.sg:
                logger.error("SendGrid client not initialized")
                return False

            mail = Mail(
                Email(self.from_email, self.from_name),
                To(to_email, to_name),
                subject,
                plain_content or ""
            )
            if html_content:
                mail.add_content(Content("text/html", html_content))

            response = self.sg.send(mail)

            if response.status_code in [200, 201, 202]:
                logger.info(f"Email sent successfully to {to_email}")
                return True
            logger.error(f"Failed to send email. Status: {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    def render_template(self, template_name: str, **kwargs) -> str:
        """Render email template with data"""
        try:
            template = self.jinja_env.get_template(template_name)
            return template.render(app_name=self.from_name, frontend_url=settings.FRONTEND_URL, **kwargs)
        except Exception as e:
            logger.error(f"Error rendering email template {template_name}: {str(e)}")
            return f"<html><body>Error rendering template: {str(e)}</body></html>"

    async def send_verification_code(self, email: str, code: str, expires_in_minutes: int) -> bool:
        html_content = self.render_template(
            "verification_code.html",
            code=code,
            expires_in_minutes=expires_in_minutes,
            timestamp=datetime.now()
        )
        return await self.send_email(
            email,
            None,
            f"Your verification code - {self.from_name}",
            html_content,
            f"Your verification code is {code}. It expires in {expires_in_minutes} minutes."
        )

    async def send_password_reset(self, email: str, reset_link: str) -> bool:
        html_content = self.render_template("password_reset.html", reset_link=reset_link)
        return await self.send_email(
            email,
            None,
            f"Reset your password - {self.from_name}",
            html_content,
            f"Reset your password using this link: {reset_link}"
        )

    async def send_registration_complete(self, email: str, name: str, tag_number: str) -> bool:
        html_content = self.render_template(
            "registration_complete.html",
            name=name,
            tag_number=tag_number
        )
        return await self.send_email(
            email,
            name,
            f"Registration complete - {self.from_name}",
            html_content,
            f"Welcome {name}! Your tag number is {tag_number}."
        )

    async def send_id_assigned_email(self, email: str, generated_id: str, id_type: Optional[str]) -> bool:
        role_label = ID_TYPE_LABELS.get(id_type or "", "Personnel")
        html_content = self.render_template(
            "id_assigned.html",
            generated_id=generated_id,
            role_label=role_label
        )
        return await self.send_email(
            email,
            None,
            f"Your {role_label} ID - {self.from_name}",
            html_content,
            f"You have been issued the {role_label} ID {generated_id}. Use it to complete your registration."
        )


email_service = EmailService()
