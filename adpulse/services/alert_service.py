"""
Alert Service
Delivers anomaly notifications via email and Slack.
"""
import smtplib
import asyncio
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict, List, Optional
import aiohttp
from dataclasses import dataclass, field

from adpulse.config import Settings, get_settings
from adpulse.models.alerts import Anomaly
from adpulse.utils.logger import log
from adpulse.utils.retry import calculate_backoff

SEVERITY_COLORS = {
    'low': '#3B82F6',
    'medium': '#F59E0B',
    'high': '#DC2626',
}

PLATFORM_LABELS = {
    'google': 'Google Ads',
    'meta': 'Meta Ads',
    'both': 'Google & Meta Ads',
}


@dataclass
class DeliveryResult:
    """Tracks delivery attempt results for auditing."""
    success: bool = False
    channel: str = ""
    attempts: int = 0
    total_delay_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)
    final_error: Optional[str] = None


def format_value(value: float, alert_type: str) -> str:
    """Render an anomaly value the way the dashboard shows it."""
    if alert_type == 'ctr_drop':
        return f"{value:.2f}%"
    if alert_type == 'conversion_drop':
        return f"{value:,.0f}"
    return f"${value:,.2f}"


def format_change(change: float) -> str:
    return f"{'+' if change > 0 else ''}{change:.1f}%"


class AlertService:
    """
    Sends anomaly alerts with retry logic.
    """

    # Retry configuration
    RETRY_MAX_ATTEMPTS = 3
    RETRY_BASE_DELAY = 2.0  # seconds
    RETRY_MAX_DELAY = 30.0  # seconds

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.smtp_configured = all([
            self.settings.smtp_host,
            self.settings.smtp_user,
            self.settings.smtp_password,
        ])

        # Track delivery stats
        self.total_sent = 0
        self.total_failed = 0
        self.total_retries = 0

    async def send_anomaly_notifications(
        self,
        anomalies: List[Anomaly],
        email_recipients: List[str],
        slack_webhook_url: str,
        dashboard_url: str,
    ) -> Dict[str, Any]:
        """
        Send every anomaly to each enabled channel.

        Returns:
            Dict with counts of sent and failed deliveries per channel
        """
        summary = {
            'email': {'sent': 0, 'failed': 0},
            'slack': {'sent': 0, 'failed': 0},
        }

        for anomaly in anomalies:
            if email_recipients:
                result = await self.send_email_alert(anomaly, email_recipients, dashboard_url)
                summary['email']['sent' if result.success else 'failed'] += 1

            if slack_webhook_url:
                result = await self.send_slack_alert(anomaly, slack_webhook_url, dashboard_url)
                summary['slack']['sent' if result.success else 'failed'] += 1

        log.info(f"Anomaly notifications: {summary}")
        return summary

    async def send_email_alert(
        self,
        anomaly: Anomaly,
        recipients: List[str],
        dashboard_url: str,
    ) -> DeliveryResult:
        """
        Send email alert with retry logic.

        Retries on transient errors (connection, timeout, SMTP 4xx) with exponential backoff.
        """
        result = DeliveryResult(channel='email')

        if not self.smtp_configured:
            log.warning("Email not configured, skipping email alert")
            result.final_error = "Email not configured"
            return result

        text_body = self._create_text_body(anomaly, dashboard_url)
        html_body = self._create_html_email(anomaly, dashboard_url)

        for attempt in range(1, self.RETRY_MAX_ATTEMPTS + 1):
            result.attempts = attempt

            try:
                msg = MIMEMultipart('alternative')
                msg['Subject'] = f"{anomaly.severity.upper()} Alert: {anomaly.title}"
                msg['From'] = self.settings.alert_email_from or self.settings.smtp_user
                msg['To'] = ", ".join(recipients)

                msg.attach(MIMEText(text_body, 'plain'))
                msg.attach(MIMEText(html_body, 'html'))

                with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
                    server.starttls()
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                    server.send_message(msg)

                result.success = True
                self.total_sent += 1
                if attempt > 1:
                    self.total_retries += (attempt - 1)
                    log.info(f"Email alert sent after {attempt} attempts: {anomaly.title}")
                else:
                    log.info(f"Email alert sent to {', '.join(recipients)}: {anomaly.title}")
                return result

            except Exception as e:
                error_str = f"{type(e).__name__}: {str(e)}"
                result.errors.append(error_str)
                result.final_error = error_str

                if attempt >= self.RETRY_MAX_ATTEMPTS or not self._is_retryable_email_error(e):
                    self.total_failed += 1
                    log.error(f"Email alert failed after {attempt} attempts: {error_str}")
                    return result

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.RETRY_BASE_DELAY,
                    max_delay=self.RETRY_MAX_DELAY
                )
                result.total_delay_seconds += delay

                log.warning(f"Email attempt {attempt} failed: {e}. Retrying in {delay:.1f}s...")
                await asyncio.sleep(delay)

        self.total_failed += 1
        return result

    def _is_retryable_email_error(self, error: Exception) -> bool:
        """Check if email error is retryable."""
        # SMTP temporary failures (4xx) are retryable
        if isinstance(error, smtplib.SMTPResponseException):
            return 400 <= error.smtp_code < 500

        if isinstance(error, (ConnectionError, TimeoutError, OSError)):
            return True

        error_str = str(error).lower()
        retryable_patterns = ['timeout', 'connection', 'temporary', 'try again', 'unavailable']
        return any(pattern in error_str for pattern in retryable_patterns)

    async def send_slack_alert(
        self,
        anomaly: Anomaly,
        webhook_url: str,
        dashboard_url: str,
    ) -> DeliveryResult:
        """
        Send Slack alert with retry logic.

        Retries on transient errors (connection, timeout, 429, 5xx) with exponential backoff.
        """
        result = DeliveryResult(channel='slack')

        if not webhook_url:
            log.warning("Slack webhook URL not configured, skipping Slack alert")
            result.final_error = "Slack not configured"
            return result

        payload = self._create_slack_payload(anomaly, dashboard_url)

        for attempt in range(1, self.RETRY_MAX_ATTEMPTS + 1):
            result.attempts = attempt

            try:
                async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
                    async with session.post(webhook_url, json=payload) as response:
                        if response.status == 200:
                            result.success = True
                            self.total_sent += 1
                            if attempt > 1:
                                self.total_retries += (attempt - 1)
                                log.info(f"Slack alert sent after {attempt} attempts: {anomaly.title}")
                            else:
                                log.info(f"Slack alert sent: {anomaly.title}")
                            return result

                        error_str = f"HTTP {response.status}"
                        result.errors.append(error_str)

                        # Non-retryable error (4xx except 429)
                        if not self._is_retryable_slack_status(response.status) or attempt >= self.RETRY_MAX_ATTEMPTS:
                            result.final_error = error_str
                            self.total_failed += 1
                            log.error(f"Slack alert failed after {attempt} attempts: {error_str}")
                            return result

            except Exception as e:
                error_str = f"{type(e).__name__}: {str(e)}"
                result.errors.append(error_str)

                if attempt >= self.RETRY_MAX_ATTEMPTS or not self._is_retryable_slack_error(e):
                    result.final_error = error_str
                    self.total_failed += 1
                    log.error(f"Slack alert failed after {attempt} attempts: {error_str}")
                    return result

            delay = calculate_backoff(
                attempt,
                base_delay=self.RETRY_BASE_DELAY,
                max_delay=self.RETRY_MAX_DELAY
            )
            result.total_delay_seconds += delay
            log.warning(f"Slack attempt {attempt} failed. Retrying in {delay:.1f}s...")
            await asyncio.sleep(delay)

        self.total_failed += 1
        return result

    def _is_retryable_slack_status(self, status_code: int) -> bool:
        """429 (rate limit) and 5xx (server errors) are retryable."""
        return status_code == 429 or status_code >= 500

    def _is_retryable_slack_error(self, error: Exception) -> bool:
        if isinstance(error, (ConnectionError, TimeoutError, OSError)):
            return True

        if isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError)):
            return True

        error_str = str(error).lower()
        retryable_patterns = ['timeout', 'connection', 'temporary', 'unavailable']
        return any(pattern in error_str for pattern in retryable_patterns)

    def _create_slack_payload(self, anomaly: Anomaly, dashboard_url: str) -> Dict[str, Any]:
        fields = [
            ("Platform", PLATFORM_LABELS.get(anomaly.platform, anomaly.platform)),
            ("Severity", anomaly.severity.upper()),
            ("Previous Value", format_value(anomaly.previous_value, anomaly.type)),
            ("Current Value", format_value(anomaly.current_value, anomaly.type)),
            ("Change", format_change(anomaly.change)),
        ]
        return {
            "text": f"Marketing Alert: {anomaly.title}",
            "attachments": [
                {
                    "color": SEVERITY_COLORS[anomaly.severity],
                    "blocks": [
                        {
                            "type": "header",
                            "text": {"type": "plain_text", "text": anomaly.title},
                        },
                        {
                            "type": "section",
                            "text": {"type": "mrkdwn", "text": anomaly.description},
                        },
                        {
                            "type": "section",
                            "fields": [
                                {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
                                for label, value in fields
                            ],
                        },
                        {
                            "type": "actions",
                            "elements": [
                                {
                                    "type": "button",
                                    "text": {"type": "plain_text", "text": "View Dashboard"},
                                    "url": dashboard_url,
                                }
                            ],
                        },
                    ],
                }
            ],
        }

    def _create_text_body(self, anomaly: Anomaly, dashboard_url: str) -> str:
        return (
            f"{anomaly.title}\n\n"
            f"{anomaly.description}\n\n"
            f"Previous: {format_value(anomaly.previous_value, anomaly.type)}\n"
            f"Current: {format_value(anomaly.current_value, anomaly.type)}\n"
            f"Change: {format_change(anomaly.change)}\n"
            f"Platform: {PLATFORM_LABELS.get(anomaly.platform, anomaly.platform)}\n"
            f"Detected at: {anomaly.detected_at}\n\n"
            f"View dashboard: {dashboard_url}\n"
        )

    def _create_html_email(self, anomaly: Anomaly, dashboard_url: str) -> str:
        """Create HTML email body"""
        color = SEVERITY_COLORS[anomaly.severity]
        change_color = '#DC2626' if anomaly.change > 0 else '#10B981'

        return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                <div style="background-color: #1E40AF; color: white; padding: 20px; border-radius: 5px 5px 0 0;">
                    <h2 style="margin: 0;">Marketing Alert</h2>
                    <p style="margin: 5px 0 0 0;">Anomaly detected in your advertising campaigns</p>
                </div>
                <div style="background-color: #f8f9fa; padding: 20px; border-left: 4px solid {color};">
                    <h3 style="margin-top: 0;">{anomaly.title}</h3>
                    <p>{anomaly.description}</p>
                    <table style="width: 100%; margin-top: 15px;">
                        <tr>
                            <td><strong>Previous</strong><br>{format_value(anomaly.previous_value, anomaly.type)}</td>
                            <td><strong>Current</strong><br>{format_value(anomaly.current_value, anomaly.type)}</td>
                            <td><strong>Change</strong><br><span style="color: {change_color};">{format_change(anomaly.change)}</span></td>
                        </tr>
                    </table>
                    <p style="color: #6B7280; font-size: 14px;">
                        <strong>Platform:</strong> {PLATFORM_LABELS.get(anomaly.platform, anomaly.platform)}<br>
                        <strong>Severity:</strong> {anomaly.severity.upper()}<br>
                        <strong>Detected at:</strong> {anomaly.detected_at}
                    </p>
                    <a href="{dashboard_url}" style="display: inline-block; background: #2563EB; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px;">View Dashboard</a>
                </div>
                <div style="padding: 10px 20px; text-align: center; color: #999; font-size: 12px;">
                    Automated alert from AdPulse. Manage thresholds in alert settings.
                </div>
            </div>
        </body>
        </html>
        """
