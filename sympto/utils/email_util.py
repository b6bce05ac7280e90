# /sympto/utils/email_util.py
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from flask import current_app
from markupsafe import escape


def _mail_configured():
    cfg = current_app.config
    return all([cfg.get('MAIL_SERVER'), cfg.get('MAIL_PORT'), cfg.get('MAIL_USERNAME'), cfg.get('MAIL_PASSWORD')])


def send_email(recipient_email: str, subject: str, text: str, html: str) -> bool:
    """
    Sends a multipart email. Returns False when mail is not configured or
    delivery fails; callers treat email as best-effort.
    """
    cfg = current_app.config
    if not _mail_configured():
        current_app.logger.warning(f"Email server is not configured. Not sending '{subject}' to {recipient_email}.")
        return False

    sender_email = cfg.get('MAIL_DEFAULT_SENDER') or cfg['MAIL_USERNAME']

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = sender_email
    message["To"] = recipient_email
    message.attach(MIMEText(text, "plain"))
    message.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(cfg['MAIL_SERVER'], cfg['MAIL_PORT']) as server:
            if cfg.get('MAIL_USE_TLS', True):
                server.starttls(context=ssl.create_default_context())
            server.login(cfg['MAIL_USERNAME'], cfg['MAIL_PASSWORD'])
            server.sendmail(sender_email, recipient_email, message.as_string())
        current_app.logger.info(f"Sent '{subject}' email to {recipient_email}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        current_app.logger.error(f"Failed to send email to {recipient_email}: {e}")
        return False


def send_verification_email(recipient_email: str, first_name: str, token: str) -> bool:
    link = f"{current_app.config['FRONTEND_URL']}/verify-email?token={token}"
    if current_app.debug and not _mail_configured():
        current_app.logger.info(f"Email verification link for {recipient_email}: {link}")

    text = f"""
    Hello {first_name},

    Welcome to Sympto. Please verify your email address by opening the link below:
    {link}

    This link expires in 24 hours. If you did not create an account, you can ignore this email.
    """

    html = f"""
    <html>
      <body>
        <h2>Welcome to Sympto</h2>
        <p>Hello {escape(first_name)},</p>
        <p>Please verify your email address to start using your account.</p>
        <p><a href="{link}">Verify email address</a></p>
        <p>This link expires in 24 hours. If you did not create an account, you can ignore this email.</p>
      </body>
    </html>
    """
    return send_email(recipient_email, "Verify your Sympto account", text, html)


def send_password_reset_email(recipient_email: str, first_name: str, token: str) -> bool:
    link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
    if current_app.debug and not _mail_configured():
        current_app.logger.info(f"Password reset link for {recipient_email}: {link}")

    text = f"""
    Hello {first_name},

    We received a request to reset your Sympto password. Open the link below to choose a new one:
    {link}

    This link expires in 1 hour. If you did not request a reset, you can ignore this email.
    """

    html = f"""
    <html>
      <body>
        <h2>Reset your password</h2>
        <p>Hello {escape(first_name)},</p>
        <p>We received a request to reset your Sympto password.</p>
        <p><a href="{link}">Choose a new password</a></p>
        <p>This link expires in 1 hour. If you did not request a reset, you can ignore this email.</p>
      </body>
    </html>
    """
    return send_email(recipient_email, "Reset your Sympto password", text, html)
