"""
Transactional email through AWS SES.
"""

import os
import logging
from typing import Optional, Tuple
import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger()
logger.setLevel(logging.INFO)


BODY_STYLE = "font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
HEADER_STYLE = "background-color: #f8f9fa; padding: 30px; border-radius: 10px; text-align: center; margin-bottom: 30px;"
CARD_STYLE = "background-color: white; padding: 30px; border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1);"
BUTTON_STYLE = "background-color: #2563eb; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px; display: inline-block; font-weight: bold;"


class EmailService:
    """Email service using AWS SES."""

    def __init__(self):
        self.ses_client = boto3.client('ses', region_name=os.environ.get('AWS_REGION', 'us-east-1'))
        self.sender_email = os.environ.get('SENDER_EMAIL', 'noreply@dealscope.io')
        self.app_name = os.environ.get('APP_NAME', 'DealScope')
        self.app_url = os.environ.get('APP_URL', 'https://dealscope.io')

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None
    ) -> bool:
        """Send an email; returns False instead of raising on SES errors."""
        try:
            message = {
                'Subject': {'Data': subject, 'Charset': 'UTF-8'},
                'Body': {
                    'Html': {'Data': html_body, 'Charset': 'UTF-8'}
                }
            }

            if text_body:
                message['Body']['Text'] = {'Data': text_body, 'Charset': 'UTF-8'}

            response = self.ses_client.send_email(
                Source=self.sender_email,
                Destination={'ToAddresses': [to_email]},
                Message=message
            )

            logger.info(f"Email sent to {to_email}, MessageId: {response['MessageId']}")
            return True

        except ClientError as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    def get_email_template(self, template_name: str, **kwargs) -> Tuple[str, str, str]:
        """Render a template into (subject, html_body, text_body)."""
        templates = {
            'welcome': self._get_welcome_template,
            'deal_completed': self._get_deal_completed_template,
            'report_shared': self._get_report_shared_template,
            'password_reset': self._get_password_reset_template
        }

        if template_name not in templates:
            raise ValueError(f"Unknown email template: {template_name}")

        return templates[template_name](**kwargs)

    def _wrap_html(self, title: str, heading: str, content: str) -> str:
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
            <title>{title}</title>
        </head>
        <body style="{BODY_STYLE}">
            <div style="{HEADER_STYLE}">
                <h1 style="color: #1e3a8a; margin-bottom: 10px;">{self.app_name}</h1>
                <h2 style="color: #34495e; margin-top: 0;">{heading}</h2>
            </div>
            <div style="{CARD_STYLE}">
                {content}
                <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
                <p style="font-size: 12px; color: #666;">
                    This email was sent from {self.app_name}. Questions? Reply to this email or visit {self.app_url}/contact.
                </p>
            </div>
        </body>
        </html>
        """

    def _button(self, url: str, label: str) -> str:
        return f"""
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{url}" style="{BUTTON_STYLE}">{label}</a>
                </div>
        """

    def _get_welcome_template(self, user_name: str = 'there', credits: int = 3) -> Tuple[str, str, str]:
        subject = f"Welcome to {self.app_name}!"
        dashboard_url = f"{self.app_url}/dashboard"

        html_body = self._wrap_html('Welcome', 'Your first deal analysis is on us', f"""
                <p>Hello {user_name},</p>
                <p>Thanks for joining {self.app_name}. We've added <strong>{credits} complimentary credits</strong> to your account so you can submit your first property for a professional deal analysis.</p>
                <ul style="padding-left: 20px;">
                    <li><strong>Submit an address:</strong> pick a Basic, Standard or Premium analysis</li>
                    <li><strong>Track progress:</strong> follow your analyst through every stage in real time</li>
                    <li><strong>Download the report:</strong> get a PDF with the full breakdown and DealScore</li>
                </ul>
                {self._button(dashboard_url, 'Go to my dashboard')}
        """)

        text_body = f"""
        Welcome to {self.app_name}!

        Hello {user_name},

        We've added {credits} complimentary credits to your account.
        Submit a property address to start your first deal analysis:
        {dashboard_url}

        The {self.app_name} Team
        """

        return subject, html_body, text_body

    def _get_deal_completed_template(self, address: str, deal_id: str, user_name: str = 'there') -> Tuple[str, str, str]:
        subject = f"Your deal analysis for {address} is complete"
        deal_url = f"{self.app_url}/deals/{deal_id}"

        html_body = self._wrap_html('Analysis complete', 'Your deal analysis is ready', f"""
                <p>Hello {user_name},</p>
                <p>Your deal analysis for <strong>{address}</strong> is complete. Your analyst has finished every stage of the review and published the final DealScore.</p>
                {self._button(deal_url, 'View the analysis')}
                <p>You can download the full PDF report from the deal page.</p>
        """)

        text_body = f"""
        Hello {user_name},

        Your deal analysis for {address} is complete.
        View it here: {deal_url}

        The {self.app_name} Team
        """

        return subject, html_body, text_body

    def _get_report_shared_template(self, address: str, share_id: str, shared_by: str, expires_at: str) -> Tuple[str, str, str]:
        subject = f"{shared_by} shared a deal report with you"
        share_url = f"{self.app_url}/shared/{share_id}"

        html_body = self._wrap_html('Shared report', 'A deal report was shared with you', f"""
                <p>Hello,</p>
                <p>{shared_by} shared the {self.app_name} analysis for <strong>{address}</strong> with you.</p>
                {self._button(share_url, 'Open the report')}
                <p><strong>This link expires on {expires_at[:10]}.</strong></p>
        """)

        text_body = f"""
        {shared_by} shared the {self.app_name} analysis for {address} with you.

        Open the report: {share_url}
        This link expires on {expires_at[:10]}.
        """

        return subject, html_body, text_body

    def _get_password_reset_template(self, reset_token: str, user_name: str = 'there') -> Tuple[str, str, str]:
        subject = f"Reset Your {self.app_name} Password"
        reset_url = f"{self.app_url}/reset-password?token={reset_token}"

        html_body = self._wrap_html('Password reset', 'Password Reset Request', f"""
                <p>Hello {user_name},</p>
                <p>We received a request to reset the password of your {self.app_name} account. Click the button below to choose a new one:</p>
                {self._button(reset_url, 'Reset Password')}
                <p style="background-color: #f8f9fa; padding: 10px; border-radius: 5px; word-break: break-all; font-family: monospace; font-size: 12px;">{reset_url}</p>
                <p><strong>This link will expire in 1 hour.</strong></p>
                <p>If you didn't request a password reset, you can ignore this email.</p>
        """)

        text_body = f"""
        {self.app_name} - Password Reset Request

        Hello {user_name},

        To reset your password, visit:
        {reset_url}

        This link will expire in 1 hour.
        If you didn't request a password reset, please ignore this email.
        """

        return subject, html_body, text_body


# Global email service instance
email_service = EmailService()


def send_templated_email(to_email: str, template_name: str, **kwargs) -> bool:
    """Render and send a template."""
    subject, html_body, text_body = email_service.get_email_template(template_name, **kwargs)
    return email_service.send_email(to_email, subject, html_body, text_body)


def send_welcome_email(email: str, user_name: str, credits: int) -> bool:
    return send_templated_email(email, 'welcome', user_name=user_name, credits=credits)


def send_deal_completed_email(email: str, address: str, deal_id: str, user_name: str = 'there') -> bool:
    return send_templated_email(email, 'deal_completed', address=address, deal_id=deal_id, user_name=user_name)


def send_report_shared_email(email: str, address: str, share_id: str, shared_by: str, expires_at: str) -> bool:
    return send_templated_email(
        email, 'report_shared',
        address=address, share_id=share_id, shared_by=shared_by, expires_at=expires_at
    )


def send_password_reset_email(email: str, reset_token: str, user_name: str = 'there') -> bool:
    return send_templated_email(email, 'password_reset', reset_token=reset_token, user_name=user_name)
