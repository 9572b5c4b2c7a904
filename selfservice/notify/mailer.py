import time

import httpx

from selfservice.settings import settings
from selfservice.observability.logging import log


def send_mail(to: str, subject: str, body: str) -> bool:
    """
    POST a message to the mail service. Raises on failure so the RQ job is
    retried; returns True once the service accepted it.
    """
    if not settings.MAIL_SERVICE_URL:
        raise RuntimeError("MAIL_SERVICE_URL is not set")

    payload = {
        "from": settings.MAIL_FROM,
        "to": to,
        "subject": subject,
        "body": body,
    }

    start = time.time()
    try:
        with httpx.Client(timeout=settings.HTTP_TIMEOUT_SEC) as client:
            resp = client.post(settings.MAIL_SERVICE_URL, json=payload)
    except httpx.HTTPError as e:
        log(
            event="mail_send_exception",
            elapsedMs=int((time.time() - start) * 1000),
            errorType=type(e).__name__,
            error=str(e)[:500],
        )
        raise

    elapsed_ms = int((time.time() - start) * 1000)
    if 200 <= resp.status_code < 300:
        log(event="mail_send_success", statusCode=int(resp.status_code), elapsedMs=elapsed_ms)
        return True

    log(
        event="mail_send_failed",
        statusCode=int(resp.status_code),
        elapsedMs=elapsed_ms,
        responseText=(resp.text or "")[:500],
    )
    raise RuntimeError(f"Mail service failed: {resp.status_code}")
