import os
import smtplib
from email.message import EmailMessage

EMAIL_OUTBOX: list[tuple[str, str, str]] = []


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)


def request_created(mentor_email: str, startup_name: str):
    send_email(
        mentor_email,
        "New mentoring request",
        f"{startup_name} would like you to mentor them.",
    )


def request_answered(startup_email: str, mentor_name: str, accepted: bool):
    verdict = "accepted" if accepted else "declined"
    send_email(
        startup_email,
        f"Mentoring request {verdict}",
        f"{mentor_name} has {verdict} your mentoring request.",
    )


def assignment_ready(mentor_email: str, startup_name: str):
    send_email(
        mentor_email,
        "Engagement ready for activation",
        f"{startup_name} has cleared every requirement. Confirm to start mentoring.",
    )


def session_booked(mentor_email: str, startup_name: str, when: str):
    send_email(
        mentor_email,
        "Mentoring session booked",
        f"{startup_name} booked a session on {when}.",
    )


def session_cancelled(to_email: str, when: str):
    send_email(to_email, "Mentoring session cancelled", f"The session on {when} was cancelled.")
