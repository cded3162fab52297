#!/usr/bin/env python3
"""
Notification Channels

Delivery providers behind the notification engine:
- WebPushChannel: browser push via pywebpush (VAPID)
- TwilioSmsChannel: SMS via the Twilio Messages REST API
- LogOnlySmsChannel: dry-run SMS provider that only logs

Push providers raise on failure so the caller can prune dead devices.
SMS providers return a bool; the dispatch queue owns retries.

Usage:
    from notification.channels import NotificationChannelFactory

    sms = NotificationChannelFactory.create_sms_channel(config.sms)
    sms.send("+15551234567", "Hello")
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import json
import logging
import os

import requests
from pywebpush import WebPushException, webpush

from core.config_loader import PushConfig, SmsConfig
from core.exceptions import PushDeliveryError, PushGoneError

logger = logging.getLogger(__name__)

EXPIRED_BODY_MARKER = "unsubscribed or expired"


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def mask_phone(phone: Optional[str]) -> str:
    """
    Mask a phone number for safe logging (PII protection).

    Shows only the last four digits, e.g., "***4567"
    """
    if not phone or len(phone) <= 4:
        return "***"
    return f"***{phone[-4:]}"


class NotificationChannel(ABC):
    """Base class for all delivery providers."""

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    def validate_config(self) -> bool:
        return True


class PushProvider(NotificationChannel):
    @property
    def channel_type(self) -> str:
        return 'web_push'

    @abstractmethod
    def send(self, subscription: Dict[str, Any], payload_json: str) -> None:
        """
        Deliver one payload to one device.

        Raises:
            PushGoneError: the device subscription is permanently gone
            PushDeliveryError: any other delivery failure
        """
        pass


class SmsProvider(NotificationChannel):
    @property
    def channel_type(self) -> str:
        return 'sms'

    @abstractmethod
    def send(self, phone_number: str, text: str) -> bool:
        """Send one SMS. Returns True if the provider accepted it."""
        pass


class WebPushChannel(PushProvider):
    """Browser push via pywebpush with VAPID credentials."""

    def __init__(self, config: Optional[PushConfig] = None):
        self.config = config or PushConfig()

    def validate_config(self) -> bool:
        return bool(self.config.vapid_private_key)

    def send(self, subscription: Dict[str, Any], payload_json: str) -> None:
        endpoint = subscription.get('endpoint')

        if not self.validate_config():
            raise PushDeliveryError("Web push not configured - VAPID_PRIVATE_KEY not set")

        try:
            webpush(
                subscription_info=subscription,
                data=payload_json,
                vapid_private_key=self.config.vapid_private_key,
                vapid_claims={'sub': self.config.vapid_subject},
                ttl=self.config.ttl_seconds,
                timeout=self.config.request_timeout_seconds,
            )
        except WebPushException as e:
            response = getattr(e, 'response', None)
            status_code = getattr(response, 'status_code', None)
            body = getattr(response, 'text', None) or str(e)

            # 410 Gone / 404 Not Found, or the provider saying so in the body
            if status_code in (404, 410) or EXPIRED_BODY_MARKER in body:
                raise PushGoneError(endpoint) from e
            raise PushDeliveryError(f"Push failed ({status_code}): {e}") from e
        except requests.RequestException as e:
            raise PushDeliveryError(f"Push request error: {e}") from e


class TwilioSmsChannel(SmsProvider):
    """SMS via Twilio's Messages endpoint."""

    def __init__(self, config: SmsConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def validate_config(self) -> bool:
        return all([self.config.account_sid, self.config.auth_token, self.config.from_number])

    def send(self, phone_number: str, text: str) -> bool:
        if not self.validate_config():
            logger.error("Twilio not configured - TWILIO_* environment variables not set")
            return False

        url = f"{self.config.api_base_url.rstrip('/')}/Accounts/{self.config.account_sid}/Messages.json"
        try:
            response = self.session.post(
                url,
                data={'To': phone_number, 'From': self.config.from_number, 'Body': text},
                auth=(self.config.account_sid, self.config.auth_token),
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Failed to send SMS to {mask_phone(phone_number)}: {e}")
            return False

        if response.status_code >= 400:
            logger.error(
                f"Twilio rejected SMS to {mask_phone(phone_number)}: "
                f"{response.status_code} {response.text[:200]}"
            )
            return False

        try:
            sid = response.json().get('sid')
        except ValueError:
            sid = None
        logger.info(f"SMS sent to {mask_phone(phone_number)} (sid={sid})")
        return True


class LogOnlySmsChannel(SmsProvider):
    """Dry-run provider: logs the message and reports success."""

    def send(self, phone_number: str, text: str) -> bool:
        logger.info(f"[DRY_RUN] SMS to {mask_phone(phone_number)}: {text}")
        return True


class LogOnlyPushChannel(PushProvider):
    def send(self, subscription: Dict[str, Any], payload_json: str) -> None:
        title = json.loads(payload_json).get('title')
        logger.info(f"[DRY_RUN] Push to {str(subscription.get('endpoint'))[:60]}: {title}")


class NotificationChannelFactory:
    """Builds providers from configuration, honouring NOTIFICATION_DRY_RUN."""

    @staticmethod
    def create_sms_channel(config: SmsConfig) -> SmsProvider:
        if _is_dry_run_mode() or not config.enabled:
            logger.info("SMS delivery disabled; using log-only SMS channel")
            return LogOnlySmsChannel()
        return TwilioSmsChannel(config)

    @staticmethod
    def create_push_channel(config: PushConfig) -> PushProvider:
        if _is_dry_run_mode():
            logger.info("Dry-run mode; using log-only push channel")
            return LogOnlyPushChannel()
        return WebPushChannel(config)
