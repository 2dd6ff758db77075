"""Email service for return and appeal status notifications"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional
from returns_engine.config import settings
import logging

logger = logging.getLogger(__name__)


async def send_email(to_email: str, subject: str, html_content: str, text_content: str = None):
    """
    Send an email using SMTP

    Args:
        to_email: Recipient email address
        subject: Email subject
        html_content: HTML content of the email
        text_content: Plain text content (optional)
    """
    message = MIMEMultipart("alternative")
    message["From"] = settings.email_from
    message["To"] = to_email
    message["Subject"] = subject

    # Add text and HTML parts
    if text_content:
        message.attach(MIMEText(text_content, "plain"))
    message.attach(MIMEText(html_content, "html"))

    try:
        await aiosmtplib.send(
            message,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            start_tls=True,
        )
        logger.info(f"Email sent successfully to {to_email}")
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {str(e)}")
        raise


def _status_html(heading: str, lines: list) -> str:
    paragraphs = "\n".join(f"<p>{line}</p>" for line in lines)
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .footer {{ margin-top: 30px; font-size: 12px; color: #666; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h2>{heading}</h2>
            {paragraphs}
            <div class="footer">
                <p>Best regards,<br>{settings.app_name}</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_return_status_email(
    email: str,
    return_number: str,
    order_number: str,
    status: str,
    notes: Optional[str] = None,
    can_appeal: bool = False,
):
    """
    Notify the customer that their return request changed status

    Args:
        email: Customer email address
        return_number: Return request number
        order_number: Order the return belongs to
        status: New return status
        notes: Decision notes to pass on, if any
        can_appeal: Whether to mention the appeal window
    """
    subject = f"Your return {return_number} is {status}"

    lines = [
        f"Your return request {return_number} for order {order_number} is now <b>{status}</b>.",
    ]
    if notes:
        lines.append(f"Notes: {notes}")
    if can_appeal:
        lines.append(
            f"If you believe this decision was made in error you can submit one appeal "
            f"within {settings.appeal_window_days} days, including photos or a short video."
        )

    text_content = "\n\n".join(line.replace("<b>", "").replace("</b>", "") for line in lines)
    await send_email(email, subject, _status_html("Return update", lines), text_content)


async def send_appeal_status_email(
    email: str,
    return_number: str,
    status: str,
    notes: Optional[str] = None,
):
    """
    Notify the customer that their appeal was decided

    Args:
        email: Customer email address
        return_number: Return request the appeal belongs to
        status: Appeal decision
        notes: Decision notes to pass on, if any
    """
    subject = f"Your appeal for return {return_number} was {status}"

    lines = [f"Your appeal for return request {return_number} was <b>{status}</b>."]
    if notes:
        lines.append(f"Notes: {notes}")

    text_content = "\n\n".join(line.replace("<b>", "").replace("</b>", "") for line in lines)
    await send_email(email, subject, _status_html("Appeal update", lines), text_content)
