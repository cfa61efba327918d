import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


def send_alert(subject: str, body: str) -> None:
    """Send an alert email via SMTP. No-op if SMTP env vars are not configured."""
    host = os.environ.get("SMTP_HOST")
    if not host:
        return

    port = int(os.environ.get("SMTP_PORT", "587"))
    user = os.environ.get("SMTP_USER", "")
    password = os.environ.get("SMTP_PASS", "")
    from_addr = os.environ.get("ALERT_FROM", "")
    to_addr = os.environ.get("ALERT_TO", "")

    if not (from_addr and to_addr):
        return

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg.set_content(body)

    try:
        with smtplib.SMTP(host, port) as smtp:
            smtp.starttls()
            if user and password:
                smtp.login(user, password)
            smtp.send_message(msg)
        logger.info(f"Alert sent: {subject}")
    except Exception as e:
        logger.error(f"Failed to send alert email: {e}")


def alert_delivery_failed(job) -> None:
    """Tell the operator a playout delivery needs attention. Retrying stays a manual step."""
    station_name = os.environ.get("STATION_NAME", "Station")
    hostname = os.environ.get("SERVER_HOSTNAME", "")
    queue_url = f"https://{hostname}/queues/delivery" if hostname else "(delivery queue)"
    send_alert(
        subject=f"[{station_name}] Delivery failed: {job.asset.title}",
        body=(
            f"A delivery to {job.profile.playout.value} via {job.profile.delivery.method.value} did not complete.\n\n"
            f"Station: {job.station_id}\n"
            f"File: {job.remote_path}\n"
            f"Error: {job.error}\n\n"
            f"Review and retry it from the queue:\n"
            f"{queue_url}"
        ),
    )
