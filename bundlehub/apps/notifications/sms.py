from __future__ import annotations

import logging
from typing import Dict, List

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (5, 15)  # (connect, read) seconds

BACKEND_ALIASES = {
    'logging': 'apps.notifications.sms.LoggingSmsBackend',
    'locmem': 'apps.notifications.sms.LocmemSmsBackend',
    'webhook': 'apps.notifications.sms.WebhookSmsBackend',
}

# messages captured by the locmem backend, like django.core.mail.outbox
outbox: List[Dict[str, str]] = []


class SmsError(Exception):
    pass


class BaseSmsBackend:
    def send(self, phone: str, message: str) -> None:
        raise NotImplementedError


class LoggingSmsBackend(BaseSmsBackend):
    def send(self, phone: str, message: str) -> None:
        logger.info('SMS', extra={'phone_suffix': phone[-4:], 'sms_message': message})


class LocmemSmsBackend(BaseSmsBackend):
    def send(self, phone: str, message: str) -> None:
        outbox.append({'phone': phone, 'message': message})


class WebhookSmsBackend(BaseSmsBackend):
    """POSTs ``{"recipient", "message", "sender"}`` to ``SMS_WEBHOOK_URL``."""

    def send(self, phone: str, message: str) -> None:
        url = getattr(settings, 'SMS_WEBHOOK_URL', '') or ''
        if not url:
            raise SmsError('SMS_WEBHOOK_URL is not configured')
        headers = {'Accept': 'application/json'}
        token = getattr(settings, 'SMS_WEBHOOK_TOKEN', '') or ''
        if token:
            headers['Authorization'] = f'Bearer {token}'
        payload = {
            'recipient': phone,
            'message': message,
            'sender': getattr(settings, 'SMS_SENDER_ID', '') or '',
        }
        try:
            resp = requests.post(url, json=payload, headers=headers, timeout=DEFAULT_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise SmsError(f'SMS webhook failed: {exc}') from exc


def get_backend() -> BaseSmsBackend:
    name = getattr(settings, 'SMS_BACKEND', 'logging') or 'logging'
    return import_string(BACKEND_ALIASES.get(name, name))()


def send_sms(phone: str, message: str) -> bool:
    """Fire-and-forget: delivery problems are logged and reported as ``False``."""
    try:
        get_backend().send(phone, message)
    except Exception:
        logger.exception('SMS delivery failed', extra={'phone_suffix': (phone or '')[-4:]})
        return False
    return True
