"""Email notification service using SendGrid."""

import html
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.core.config import settings

logger = logging.getLogger(__name__)

WRAPPER_OPEN = """
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
"""
WRAPPER_CLOSE = """
                </div>
            </body>
        </html>
"""


def _button(url: str, label: str, color: str = "#4A90E2") -> str:
    return (
        f'<a href="{html.escape(url)}" style="display: inline-block; padding: 12px 24px; '
        f'background-color: {color}; color: white; text-decoration: none; border-radius: 5px; margin: 10px 5px;">'
        f"{html.escape(label)}</a>"
    )


def _details(service_name: str, start_local: datetime, end_local: datetime, price: Optional[Decimal] = None) -> str:
    price_row = f"<p><strong>Price:</strong> {Decimal(price):.2f}</p>" if price is not None else ""
    return f"""
                    <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin: 20px 0;">
                        <p><strong>Service:</strong> {html.escape(service_name)}</p>
                        <p><strong>Date:</strong> {start_local:%A, %B %d, %Y}</p>
                        <p><strong>Time:</strong> {start_local:%H:%M} - {end_local:%H:%M}</p>
                        {price_row}
                    </div>
"""


def confirm_url(token: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/v1/public/bookings/confirm/{token}"


def cancel_url(token: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/v1/public/bookings/cancel/{token}"


def google_calendar_link(
    service_name: str,
    business_name: str,
    start_utc: datetime,
    end_utc: datetime,
    price: Optional[Decimal] = None,
) -> str:
    """Google Calendar "add event" URL for an appointment."""
    stamp = "%Y%m%dT%H%M%SZ"
    details = f"Service: {service_name}."
    if price is not None:
        details += f" Price: {Decimal(price):.2f}."
    return (
        "https://www.google.com/calendar/render?action=TEMPLATE"
        f"&text={quote('Booking: ' + service_name)}"
        f"&dates={start_utc.strftime(stamp)}/{end_utc.strftime(stamp)}"
        f"&details={quote(details)}"
        f"&location={quote(business_name)}&sf=true&output=xml"
    )


class EmailService:
    """Email service for sending appointment notifications."""

    def __init__(self):
        """Initialize email service."""
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.SENDGRID_FROM_EMAIL
        self.from_name = settings.SENDGRID_FROM_NAME
        self.client = None

        if not settings.NOTIFICATIONS_ENABLED:
            logger.info("Notifications disabled by configuration. Emails will not be sent.")
            self.enabled = False
        elif not self.api_key:
            logger.warning("SENDGRID_API_KEY not configured. Emails will not be sent.")
            self.enabled = False
        else:
            self.client = SendGridAPIClient(self.api_key)
            self.enabled = True
            logger.info("Email service initialized successfully")

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        plain_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html_body: HTML body content
            plain_body: Plain text body (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.info(f"Email service disabled. Would have sent to {to}: {subject}")
            return False

        try:
            message = Mail(
                from_email=(self.from_email, self.from_name),
                to_emails=to,
                subject=subject,
                html_content=html_body,
            )

            if plain_body:
                message.plain_text_content = plain_body

            response = self.client.send(message)

            if response.status_code >= 200 and response.status_code < 300:
                logger.info(f"Email sent successfully to {to}: {subject}")
                return True
            else:
                logger.error(f"Failed to send email to {to}: {response.status_code} {response.body}")
                return False

        except Exception as e:
            logger.error(f"Error sending email to {to}: {str(e)}")
            return False

    async def send_booking_confirmation_request(
        self,
        customer_email: str,
        customer_name: str,
        business_name: str,
        service_name: str,
        start_local: datetime,
        end_local: datetime,
        token: str,
    ) -> bool:
        """
        Ask a customer to confirm a self-service booking.

        Args:
            customer_email: Customer's email
            customer_name: Customer's name
            business_name: Business name
            service_name: Service being booked
            start_local: Start in the business timezone
            end_local: End in the business timezone
            token: Single-use confirmation token

        Returns:
            True if sent successfully, False otherwise
        """
        subject = f"Please confirm your appointment with {business_name}"

        html_body = (
            WRAPPER_OPEN
            + f"""
                    <h2 style="color: #4A90E2;">Confirm your appointment</h2>
                    <p>Hi {html.escape(customer_name)},</p>
                    <p>Thanks for booking with {html.escape(business_name)}. Your appointment is held for you until you confirm it.</p>
"""
            + _details(service_name, start_local, end_local)
            + f"""
                    <p>{_button(confirm_url(token), "Confirm appointment")}</p>
                    <p style="color: #666; font-size: 14px; margin-top: 40px;">
                        If you did not make this booking you can ignore this email.
                    </p>
"""
            + WRAPPER_CLOSE
        )

        plain_body = f"""
        Confirm your appointment

        Hi {customer_name},

        Thanks for booking with {business_name}.

        Service: {service_name}
        Date: {start_local:%A, %B %d, %Y}
        Time: {start_local:%H:%M} - {end_local:%H:%M}

        Confirm here: {confirm_url(token)}
        """

        return await self.send_email(customer_email, subject, html_body, plain_body)

    async def send_booking_created(
        self,
        customer_email: str,
        customer_name: str,
        business_name: str,
        service_name: str,
        start_local: datetime,
        end_local: datetime,
        start_utc: datetime,
        end_utc: datetime,
        price: Decimal,
        token: Optional[str] = None,
    ) -> bool:
        """Tell a customer the business booked an appointment for them."""
        subject = f"New appointment at {business_name}"
        calendar_url = google_calendar_link(service_name, business_name, start_utc, end_utc, price)
        cancel_block = ""
        if token:
            cancel_block = f"""
                    <p style="color: #888; font-size: 12px;">Can't make it?</p>
                    <p>{_button(cancel_url(token), "Cancel appointment", "#dc3545")}</p>
                    <p style="color: #aaa; font-size: 11px;">Cancellation may be subject to the business policy.</p>
"""

        html_body = (
            WRAPPER_OPEN
            + f"""
                    <h2 style="color: #4A90E2;">Appointment booked</h2>
                    <p>Hi {html.escape(customer_name or "there")},</p>
                    <p>A new appointment has been scheduled for you at <strong>{html.escape(business_name)}</strong>.</p>
"""
            + _details(service_name, start_local, end_local, price)
            + f"""
                    <p>{_button(calendar_url, "Add to Google Calendar", "#db4437")}</p>
"""
            + cancel_block
            + WRAPPER_CLOSE
        )

        return await self.send_email(customer_email, subject, html_body)

    async def send_appointment_cancelled(
        self,
        customer_email: str,
        business_name: str,
        service_name: str,
        start_local: datetime,
        end_local: datetime,
    ) -> bool:
        """Cancellation notice; also used when an appointment is deleted."""
        subject = f"Cancelled: {business_name}"

        html_body = (
            WRAPPER_OPEN
            + f"""
                    <h2 style="color: #dc3545;">Appointment cancelled</h2>
                    <p>Your appointment at <strong>{html.escape(business_name)}</strong> has been cancelled.</p>
"""
            + _details(service_name, start_local, end_local)
            + WRAPPER_CLOSE
        )

        return await self.send_email(customer_email, subject, html_body)

    async def send_appointment_changed(
        self,
        customer_email: str,
        customer_name: str,
        business_name: str,
        service_name: str,
        start_local: datetime,
        end_local: datetime,
        price: Decimal,
        previous_start_local: datetime,
        previous_end_local: datetime,
        previous_price: Decimal,
    ) -> bool:
        """Tell a customer the business moved or repriced their appointment."""
        subject = f"Updated appointment at {business_name}"

        html_body = (
            WRAPPER_OPEN
            + f"""
                    <h2 style="color: #4A90E2;">Appointment updated</h2>
                    <p>Hi {html.escape(customer_name or "there")},</p>
                    <p>Your appointment at <strong>{html.escape(business_name)}</strong> has been updated.</p>
                    <p><strong>New details</strong></p>
"""
            + _details(service_name, start_local, end_local, price)
            + """
                    <p><strong>Previous details</strong></p>
"""
            + _details(service_name, previous_start_local, previous_end_local, previous_price)
            + """
                    <p style="color: #888; font-size: 12px;">
                        If this change doesn't work for you, please use the cancellation link from your original booking email or contact the business.
                    </p>
"""
            + WRAPPER_CLOSE
        )

        return await self.send_email(customer_email, subject, html_body)


# Global email service instance
email_service = EmailService()
