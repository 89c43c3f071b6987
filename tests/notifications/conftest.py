"""
Pytest fixtures for notification tests.

Provides:
- A sample pipeline email message
- SMTP settings pointing at a fake server
"""

import pytest

from config.settings import SMTPSettings
from notifications.email_provider import EmailMessage


@pytest.fixture
def sample_email_message():
    """A rendered KYC invitation."""
    return EmailMessage(
        to="ada@example.com",
        subject="You're invited to invest in Growth Fund I",
        body_text="Hi Ada,\n\nhttps://app.example.com/kyc/token/tok-abc\n",
        from_email="ir@fund.example.com",
        from_name="Growth Fund IR",
        tags=["template:kyc_invite"],
    )


@pytest.fixture
def smtp_settings():
    return SMTPSettings(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        use_tls=True,
    )
