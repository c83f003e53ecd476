"""Outbound credential emails."""

from email.message import EmailMessage

import aiosmtplib
from loguru import logger

from .config.settings import SMTPSettings


class EmailService:
    """Service for sending temporary passwords to teams and companies."""

    def __init__(self, settings: SMTPSettings):
        self.settings = settings

    async def send_temp_password(self, to_email: str, password: str) -> bool:
        """Send a temporary password via SMTP.

        Returns True if email sent successfully, False otherwise.
        """
        try:
            message = EmailMessage()
            message["From"] = self.settings.sender_email or self.settings.username
            message["To"] = to_email
            message["Subject"] = "Cyber-Chase - Your temporary password"
            message.set_content(f"""\
Welcome to Cyber-Chase!

Your temporary password is: {password}

Use it together with this email address to sign in.
""")

            await aiosmtplib.send(
                message,
                hostname=self.settings.host,
                port=self.settings.port,
                username=self.settings.username or None,
                password=self.settings.password or None,
                start_tls=self.settings.use_tls,
            )
            logger.info("Temporary password sent to {}", to_email)
            return True
        except Exception as e:
            logger.error("Failed to send password email to {}: {}", to_email, e)
            return False
