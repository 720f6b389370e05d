"""
Mailer Package

Outbound email for the contact form. The Mailer interface hides the
provider; ResendMailer posts to the Resend HTTP API.
"""

from sharedUtils.mailer.base_mailer import EmailMessage, EmailSendError, Mailer
from sharedUtils.mailer.contact import ContactForm, build_contact_email
from sharedUtils.mailer.resend_mailer import ResendMailer

__all__ = ["EmailMessage", "EmailSendError", "Mailer", "ContactForm", "build_contact_email", "ResendMailer"]
