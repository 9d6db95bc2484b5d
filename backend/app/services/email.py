from __future__ import annotations

from email.message import EmailMessage
import smtplib
import ssl
import time

from app.core.config import get_settings


class EmailDeliveryError(RuntimeError):
    pass


def _build_from_header(from_email: str, from_name: str | None) -> str:
    if from_name:
        return f"{from_name} <{from_email}>"
    return from_email


def _build_message(*, from_header: str, to_email: str, subject: str, text_content: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = from_header
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text_content)
    return message


def _is_connection_issue(exc: Exception) -> bool:
    return isinstance(
        exc,
        (
            smtplib.SMTPConnectError,
            smtplib.SMTPServerDisconnected,
            smtplib.SMTPHeloError,
            OSError,
            TimeoutError,
        ),
    )


def _deliver(settings, message: EmailMessage, timeout: int) -> None:
    password = settings.smtp_password or ""
    if settings.smtp_use_ssl:
        with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
            if settings.smtp_username:
                smtp.login(settings.smtp_username, password)
            smtp.send_message(message)
        return

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=timeout) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls(context=ssl.create_default_context())
        if settings.smtp_username:
            smtp.login(settings.smtp_username, password)
        smtp.send_message(message)


def send_email(*, to_email: str, subject: str, text_content: str) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_from_email:
        raise EmailDeliveryError("SMTP is not configured")

    message = _build_message(
        from_header=_build_from_header(settings.smtp_from_email, settings.smtp_from_name),
        to_email=to_email,
        subject=subject,
        text_content=text_content,
    )
    timeout = max(1, settings.smtp_timeout_seconds)
    retry_attempts = max(1, settings.smtp_retry_attempts)
    retry_backoff_seconds = max(0.0, settings.smtp_retry_backoff_seconds)

    last_error: Exception | None = None
    for attempt in range(1, retry_attempts + 1):
        try:
            _deliver(settings, message, timeout)
            return
        except smtplib.SMTPAuthenticationError as exc:
            raise EmailDeliveryError("SMTP authentication failed") from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise EmailDeliveryError("SMTP recipient rejected") from exc
        except smtplib.SMTPSenderRefused as exc:
            raise EmailDeliveryError("SMTP sender rejected") from exc
        except smtplib.SMTPDataError as exc:
            raise EmailDeliveryError("SMTP data rejected") from exc
        except Exception as exc:  # pragma: no cover - transport-specific behavior
            if not _is_connection_issue(exc):
                raise EmailDeliveryError("Unable to deliver email") from exc
            last_error = exc
            if attempt < retry_attempts and retry_backoff_seconds > 0:
                time.sleep(retry_backoff_seconds * attempt)

    raise EmailDeliveryError("SMTP connection failed") from last_error
