"""
Transactional email notifications

Every public ``send_*`` method is fire-and-forget from the caller's point of
view: delivery problems are logged and reported as ``False``, never raised.
"""
from datetime import datetime
from email.message import EmailMessage
from typing import Optional
import logging

from aiosmtplib import send, SMTPException

from wellness_booking.core.config import settings
from wellness_booking.core.metrics import emails_sent_total

logger = logging.getLogger(__name__)


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "fecha por confirmar"
    return value.strftime("%d/%m/%Y %H:%M")


class EmailService:
    """Builds and delivers booking and waitlist emails over SMTP"""

    async def _deliver(self, message: EmailMessage) -> None:
        await send(
            message,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            start_tls=True,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
        )

    async def send(self, template: str, to_email: str, subject: str, body: str) -> bool:
        if not to_email:
            return False
        if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
            logger.debug(f"SMTP credentials not set; skipping '{template}' email to {to_email}")
            emails_sent_total.labels(template=template, result="skipped").inc()
            return False

        message = EmailMessage()
        message["From"] = settings.EMAIL_FROM
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        try:
            await self._deliver(message)
        except (SMTPException, OSError) as e:
            logger.error(f"Failed to send '{template}' email to {to_email}: {e}")
            emails_sent_total.labels(template=template, result="failed").inc()
            return False

        logger.info(f"Sent '{template}' email to {to_email}")
        emails_sent_total.labels(template=template, result="sent").inc()
        return True

    async def send_cancellation_email(
        self,
        email: str,
        name: Optional[str],
        session_name: str,
        scheduled_date: Optional[datetime],
        cancelled_by: str,
        reason: Optional[str] = None,
        credit_refunded: bool = False,
        seats_released: int = 0,
    ) -> bool:
        lines = [
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"Tu reserva para \"{session_name}\" ({_format_date(scheduled_date)}) ha sido cancelada.",
        ]
        if cancelled_by == "admin":
            lines.append("La cancelación fue realizada por nuestro equipo.")
        if reason:
            lines.append(f"Motivo: {reason}")
        if credit_refunded:
            lines.append("Tu crédito ha sido devuelto a tu cuenta.")
        if seats_released:
            lines.append(f"Se liberaron {seats_released} cupo(s).")
        lines += ["", "Con cariño,", "El equipo"]
        return await self.send(
            "cancellation",
            email,
            f"Reserva cancelada: {session_name}",
            "\n".join(lines),
        )

    async def send_waitlist_joined_email(
        self,
        email: str,
        name: Optional[str],
        event_title: str,
        event_date: Optional[datetime],
        position: int,
        seats_requested: int,
    ) -> bool:
        body = "\n".join([
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"Estás en la lista de espera de \"{event_title}\" ({_format_date(event_date)}).",
            f"Posición: {position}. Cupos solicitados: {seats_requested}.",
            "Te avisaremos en cuanto se libere un cupo.",
        ])
        return await self.send("waitlist_joined", email, f"Lista de espera: {event_title}", body)

    async def send_waitlist_offer_email(
        self,
        email: str,
        name: Optional[str],
        event_title: str,
        event_date: Optional[datetime],
        seats: int,
        expires_at: datetime,
    ) -> bool:
        body = "\n".join([
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"¡Se liberó un cupo para \"{event_title}\" ({_format_date(event_date)})!",
            f"Tenemos {seats} cupo(s) reservado(s) para ti hasta el {_format_date(expires_at)} (UTC).",
            "Acepta o rechaza la oferta desde tu cuenta antes de esa fecha.",
        ])
        return await self.send("waitlist_offer", email, f"¡Tienes un cupo para {event_title}!", body)

    async def send_waitlist_offer_reminder_email(
        self,
        email: str,
        name: Optional[str],
        event_title: str,
        hours_remaining: int,
    ) -> bool:
        body = "\n".join([
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"Tu oferta de cupo para \"{event_title}\" vence en {hours_remaining} hora(s).",
            "Si no respondes, el cupo pasará a la siguiente persona en la lista.",
        ])
        return await self.send("waitlist_reminder", email, f"Recordatorio: tu cupo para {event_title}", body)

    async def send_waitlist_offer_expired_email(
        self,
        email: str,
        name: Optional[str],
        event_title: str,
    ) -> bool:
        body = "\n".join([
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"Tu oferta de cupo para \"{event_title}\" ha expirado.",
            "Puedes volver a unirte a la lista de espera si lo deseas.",
        ])
        return await self.send("waitlist_expired", email, f"Oferta expirada: {event_title}", body)

    async def send_event_booking_confirmation(
        self,
        email: str,
        name: Optional[str],
        event_title: str,
        event_date: Optional[datetime],
        seats: int,
        needs_payment: bool,
    ) -> bool:
        status_line = (
            "Tu reserva queda pendiente de pago."
            if needs_payment
            else "Tu reserva está confirmada."
        )
        body = "\n".join([
            f"Hola {name or settings.DEFAULT_RECIPIENT_NAME},",
            "",
            f"Aceptaste {seats} cupo(s) para \"{event_title}\" ({_format_date(event_date)}).",
            status_line,
        ])
        return await self.send("event_booking", email, f"Reserva: {event_title}", body)


# Global instance
email_service = EmailService()


async def get_email_service() -> EmailService:
    """Dependency to get the email service"""
    return email_service
