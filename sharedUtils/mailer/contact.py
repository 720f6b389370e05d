"""Contact form validation and the notification email built from it."""

import html
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sharedUtils.config.models import EmailConfig
from sharedUtils.mailer.base_mailer import EmailMessage

INTEREST_LABELS = {
    "pilot": "Booking a Pilot",
    "demo": "Requesting a Demo",
    "pricing": "Pricing Information",
    "partnership": "Partnership Opportunities",
    "general": "General Inquiry",
}


class ContactForm(BaseModel):
    """A submission of the public contact form (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    company: str
    interest: str
    role: Optional[str] = None
    message: Optional[str] = None

    @field_validator("first_name", "last_name", "email", "company", "interest", mode="before")
    @classmethod
    def require_text(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("field is required")
        return v.strip()

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def interest_label(self) -> str:
        return INTEREST_LABELS.get(self.interest, self.interest)


def build_contact_email(form: ContactForm, config: EmailConfig) -> EmailMessage:
    """
    Notification sent to the team for one submission.

    Every user-supplied field is HTML-escaped. A single recipient is sent as a
    plain address rather than a one-element list.
    """
    esc = html.escape
    lines = [
        '<div style="font-family:Arial,sans-serif;line-height:1.6">',
        "<h2>New Contact Form Submission</h2>",
        f"<p><strong>Name:</strong> {esc(form.name)}</p>",
        f"<p><strong>Email:</strong> {esc(form.email)}</p>",
        f"<p><strong>Company:</strong> {esc(form.company)}</p>",
        f"<p><strong>Role:</strong> {esc(form.role or 'Not specified')}</p>",
        f"<p><strong>Interest:</strong> {esc(form.interest_label)}</p>",
    ]
    recipients = list(config.mail_to)
    if form.message:
        body = esc(form.message).replace("\n", "<br/>")
        lines.append(f"<p><strong>Message:</strong></p><p>{body}</p>")
    lines.append("</div>")

    return EmailMessage(
        from_=config.mail_from,
        to=recipients[0] if len(recipients) == 1 else recipients,
        reply_to=form.email,
        subject=f"{config.subject_prefix} {form.interest_label}",
        html="\n".join(lines),
    )
