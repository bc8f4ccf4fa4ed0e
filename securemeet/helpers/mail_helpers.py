"""Verification code delivery"""
import smtplib
import ssl
import time
from email.message import EmailMessage

from flask import current_app

from securemeet.errors import NotificationDeliveryFailed

STEP_MESSAGES = {
    1: {
        'subject': 'First Step Verification Code',
        'title': 'First Authentication Step',
        'message': 'To continue with your login, please use the following verification code:',
    },
    2: {
        'subject': 'Second Step Verification Code',
        'title': 'Second Authentication Step',
        'message': "You're almost there! Use this verification code for the second step:",
    },
    3: {
        'subject': 'Final Step Verification Code',
        'title': 'Final Authentication Step',
        'message': 'Complete your secure login with this final verification code:',
    },
}

FOOTER = ('This code will expire in 10 minutes for your security.\n'
          "If you didn't request this code, please ignore this email.")


def render_verification_email(step, code):
    """Return (subject, text, html) for a login step"""
    parts = STEP_MESSAGES[step]
    text = f"{parts['title']}\n\n{parts['message']}\n\nYour verification code is: {code}\n\n{FOOTER}\n"
    html = f'''
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h1 style="color: #333; text-align: center; padding: 20px 0;">{parts['title']}</h1>
      <div style="background-color: #f5f5f5; padding: 20px; border-radius: 5px;">
        <p>{parts['message']}</p>
        <div style="background-color: #fff; padding: 15px; text-align: center; font-size: 24px; letter-spacing: 5px; font-weight: bold;">
          {code}
        </div>
        <p style="color: #666; font-size: 14px;">{FOOTER.replace(chr(10), '<br>')}</p>
      </div>
    </div>
    '''
    return parts['subject'], text, html


class Notifier:
    """Delivers a verification code for a login step. Raises on failure."""

    def send(self, to, step, code):
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Development notifier: writes the message to the application log"""

    def send(self, to, step, code):
        subject, text, _ = render_verification_email(step, code)
        current_app.logger.info('EMAIL to=%s subject=%s\n%s', to, subject, text)


class SmtpNotifier(Notifier):
    def __init__(self, host, port, username=None, password=None, sender=None, timeout=10):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config['MAIL_SERVER'],
            port=config['MAIL_PORT'],
            username=config.get('MAIL_USERNAME'),
            password=config.get('MAIL_PASSWORD'),
            sender=config.get('MAIL_SENDER'),
            timeout=config.get('MAIL_TIMEOUT', 10),
        )

    def send(self, to, step, code):
        subject, text, html = render_verification_email(step, code)
        msg = EmailMessage()
        msg['Subject'] = subject
        msg['From'] = f'SecureMeet <{self.sender}>'
        msg['To'] = to
        msg.set_content(text)
        msg.add_alternative(html, subtype='html')

        ctx = ssl.create_default_context()
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as s:
            s.starttls(context=ctx)
            if self.username and self.password:
                s.login(self.username, self.password)
            s.send_message(msg)


def create_notifier(config):
    if config.get('NOTIFIER') == 'smtp':
        return SmtpNotifier.from_config(config)
    return ConsoleNotifier()


def get_notifier():
    return current_app.extensions['securemeet_notifier']


def send_verification_email(to, step, code):
    """Deliver code with retries and exponential backoff.

    Raises NotificationDeliveryFailed once MAIL_MAX_ATTEMPTS attempts failed.
    """
    notifier = get_notifier()
    max_attempts = max(1, current_app.config['MAIL_MAX_ATTEMPTS'])
    delay = current_app.config['MAIL_RETRY_DELAY']

    for attempt in range(max_attempts):
        try:
            notifier.send(to, step, code)
            current_app.logger.info('Verification email for step %s sent to %s', step, to)
            return True
        except Exception as e:
            # any notifier failure counts as a failed attempt
            current_app.logger.warning(
                'Sending verification email failed (attempt %d/%d): %s: %s',
                attempt + 1, max_attempts, type(e).__name__, str(e)
            )
            if attempt + 1 < max_attempts and delay:
                time.sleep(delay * (2 ** attempt))

    current_app.logger.error('Giving up on verification email to %s after %d attempts', to, max_attempts)
    raise NotificationDeliveryFailed('Failed to send verification email', attempts=max_attempts)
