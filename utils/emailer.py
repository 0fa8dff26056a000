import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Optional

from flask import current_app

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to_email: str
    subject: str
    html_body: str
    text_body: str
    to_name: Optional[str] = None
    sender_name: Optional[str] = None


def send_email(message: OutgoingEmail):
    host = current_app.config.get("SMTP_HOST")
    port = current_app.config.get("SMTP_PORT", 587)
    username = current_app.config.get("SMTP_USERNAME")
    password = current_app.config.get("SMTP_PASSWORD")
    from_email = current_app.config.get("SMTP_FROM_EMAIL") or username
    use_tls = current_app.config.get("SMTP_USE_TLS", True)

    if not host or not from_email:
        return False, "Email not configured"

    msg = EmailMessage()
    msg["From"] = formataddr((message.sender_name, from_email)) if message.sender_name else from_email
    msg["To"] = formataddr((message.to_name, message.to_email)) if message.to_name else message.to_email
    msg["Subject"] = message.subject
    msg.set_content(message.text_body)
    msg.add_alternative(message.html_body, subtype="html")

    try:
        with smtplib.SMTP(host, port, timeout=10) as server:
            if use_tls:
                server.starttls()
            if username and password:
                server.login(username, password)
            server.send_message(msg)
        return True, None
    except (smtplib.SMTPException, OSError) as exc:
        return False, str(exc)


class Notifier:
    """
    Fire-and-forget email dispatch.

    Jobs run on a small thread pool inside their own app context. Delivery
    failures are logged and never raised to the code that queued them; the
    optional ``on_sent`` hook runs only after a successful send.
    """

    def __init__(self, transport: Callable = send_email, max_workers: int = 2, inline: bool = False):
        self.transport = transport
        self.inline = inline
        self._max_workers = max_workers
        self._executor = None

    def init_app(self, app):
        self._max_workers = app.config.get("EMAIL_DISPATCH_WORKERS", self._max_workers)
        self.inline = app.config.get("EMAIL_DISPATCH_INLINE", self.inline)
        app.extensions["notifier"] = self

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="email")
        return self._executor

    def dispatch(self, message: OutgoingEmail, on_sent: Optional[Callable[[], None]] = None) -> Future:
        if self.inline:
            future = Future()
            future.set_result(self._deliver(message, on_sent))
            return future

        app = current_app._get_current_object()
        return self._get_executor().submit(self._deliver_in_context, app, message, on_sent)

    def _deliver_in_context(self, app, message, on_sent) -> bool:
        with app.app_context():
            return self._deliver(message, on_sent)

    def _deliver(self, message: OutgoingEmail, on_sent) -> bool:
        try:
            sent, error = self.transport(message)
        except Exception:
            logger.exception("Email transport crashed sending %r to %s", message.subject, message.to_email)
            return False

        if not sent:
            logger.warning("Email %r to %s not delivered: %s", message.subject, message.to_email, error)
            return False

        logger.info("Email %r sent to %s", message.subject, message.to_email)
        if on_sent is not None:
            try:
                on_sent()
            except Exception:
                logger.exception("Post-delivery hook failed for %s", message.to_email)
        return True

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def dispatch_quietly(notifier: Notifier, build: Callable[[], OutgoingEmail], on_sent=None) -> Optional[Future]:
    """Render and queue an email; any failure is logged and swallowed."""
    try:
        message = build()
        return notifier.dispatch(message, on_sent=on_sent)
    except Exception:
        logger.exception("Could not queue notification email")
        return None
