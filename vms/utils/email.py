from flask import current_app
from flask_mail import Message, Mail
from threading import Thread

from vms.models import NotificationEvent
from vms.services.notification_service import Dispatcher

mail = Mail()


def send_async_email(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
        except Exception as e:
            app.logger.error(f"Failed to send email: {e}")


def _format_date(value):
    if not value:
        return "N/A"
    if isinstance(value, str):
        return value
    return value.strftime("%b %d, %Y")


def _format_time(value):
    if not value:
        return "N/A"
    if isinstance(value, str):
        return value
    return value.strftime("%I:%M %p")


def build_message(club_name, recipient, event, context):
    """Subject and plain-text body for one admission event."""
    name = recipient.name
    visit_date = _format_date(context.get("visit_date"))
    status = context.get("new_status") or context.get("status")

    if event == NotificationEvent.REGISTERED:
        subject = "Visit Registered"
        body = f"Dear {name}, your visit on {visit_date} has been registered. Status: {str(status).capitalize()}."
        if status == "unapproved":
            body += " It is pending approval due to visit limits. You will be notified once approved."
        elif status == "approved":
            body += " Please carry a valid ID when you arrive."
    elif event == NotificationEvent.STATUS_CHANGED:
        subject = "Visit Status Update"
        body = f"Dear {name}, your visit on {visit_date} "
        if status == "approved":
            body += "has been approved. Please carry a valid ID when you arrive."
        elif status == "unapproved":
            body += "is currently pending approval due to capacity limits. You will be notified once approved."
        elif status == "cancelled":
            body += "has been cancelled. Please contact your host for more information."
        else:
            body += f"is now {status}. Please contact reception for assistance."
    elif event == NotificationEvent.CANCELLED:
        subject = "Visit Cancelled"
        body = f"Dear {name}, your visit on {visit_date} has been cancelled. Please contact your host for more information."
    elif event == NotificationEvent.SIGNED_IN:
        subject = "Signed In"
        body = f"Welcome {name}! You have successfully signed in at {_format_time(context.get('sign_in_time'))}. Enjoy your visit!"
    elif event == NotificationEvent.SIGNED_OUT:
        subject = "Signed Out"
        body = (
            f"Thank you for your visit {name}! You have successfully signed out at "
            f"{_format_time(context.get('sign_out_time'))} after {context.get('duration', 'N/A')}. Have a great day!"
        )
    elif event == NotificationEvent.STANDING_CHANGED:
        subject = "Status Update"
        new_standing = context.get("new_standing")
        body = f"Dear {name}, "
        if new_standing == "suspended" and context.get("automatic"):
            body += "your privileges have been temporarily suspended due to visit limit exceeded. Contact reception for assistance."
        elif new_standing == "suspended":
            body += "your status has been updated to suspended."
        elif new_standing == "banned":
            body += "your privileges have been permanently revoked. Please contact management for clarification."
        else:
            body += "your privileges have been restored. You can now make new visit requests."
    elif event == NotificationEvent.HOST_LIMIT_REACHED:
        subject = "Daily Guest Limit Reached"
        body = (
            f"Dear {name}, you have exceeded your daily guest limit ({context.get('limit')}) for {visit_date}. "
            f"{context.get('affected_count')} guest(s) are pending approval and will be notified once slots become available."
        )
    else:
        subject = "Notification"
        body = f"Dear {name}, {event.value}."

    return f"{club_name}: {subject}", body


class MailDispatcher(Dispatcher):
    """Sends each notification as a plain-text email on a background thread."""

    def notify(self, recipient, event, context):
        app = current_app._get_current_object()
        club_name = app.config.get("CLUB_NAME", "Club")

        if not recipient.receive_email:
            app.logger.info(f"{recipient.kind} {recipient.id} opted out of emails, skipping {event.value}")
            return
        if not recipient.email:
            app.logger.info(f"No email for {recipient.kind} {recipient.id}, skipping {event.value}")
            return

        subject, body = build_message(club_name, recipient, event, context)

        # If in testing mode, log the email instead of sending it
        if app.testing:
            app.logger.info("--- MOCK EMAIL ---")
            app.logger.info(f"To: {recipient.email}")
            app.logger.info(f"Subject: {subject}")
            app.logger.info(f"Body: {body}")
            app.logger.info("--- END MOCK EMAIL ---")
            return

        msg = Message(
            subject,
            sender=(club_name, app.config.get("MAIL_USERNAME")),
            recipients=[recipient.email],
        )
        msg.body = body

        Thread(target=send_async_email, args=(app, msg)).start()
