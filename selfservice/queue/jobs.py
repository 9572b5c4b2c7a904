from selfservice.notify.mailer import send_mail
from selfservice.observability.logging import log


def send_verification_email_job(to: str, subject: str, body: str):
    """
    Background job delivering a verification code. Exceptions propagate so
    RQ applies the Retry policy given at enqueue time.
    """
    try:
        log(event="verification_email_job_start", subject=subject)
        send_mail(to, subject, body)
    except Exception as e:
        log(event="verification_email_job_exception", error=str(e)[:500])
        raise
