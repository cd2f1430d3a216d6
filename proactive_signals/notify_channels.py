#!/usr/bin/env python3
"""
Notification Channels - Delivery surfaces for engine notifications.

Every sink exposes notify(message, severity, action=None). Delivery is
fire-and-forget from the engine's side; a sink may raise and the engine
will log and move on.

Supports:
- Console (always available)
- Logging (for headless runs)
- Telegram (via bot API)
- Multi-channel fan-out with console fallback

Telegram credentials are loaded from environment variables:
    export TELEGRAM_BOT_TOKEN="your-bot-token"
    export TELEGRAM_CHAT_ID="your-chat-id"
"""

import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from datetime import datetime
from typing import Dict, Optional, Sequence

from proactive_signals.models import NotificationAction, Severity

logger = logging.getLogger("proactive.notify_channels")

SEVERITY_TAGS = {
    Severity.INFO: "INFO",
    Severity.SUCCESS: "OK",
    Severity.ERROR: "ERROR",
}


def format_notification(message: str, severity: Severity,
                        action: Optional[NotificationAction] = None) -> str:
    text = f"[{SEVERITY_TAGS.get(Severity(severity), 'INFO')}] {message}"
    if action is not None:
        text += f"  -> {action.label} ({action.kind.value}:{action.entity_id})"
    return text


class NotificationSink:
    """Base delivery surface."""

    name = "sink"

    def notify(self, message: str, severity: Severity = Severity.INFO,
               action: Optional[NotificationAction] = None) -> bool:
        raise NotImplementedError


class ConsoleSink(NotificationSink):
    """Print notification to console."""

    name = "console"

    def notify(self, message, severity=Severity.INFO, action=None) -> bool:
        timestamp = datetime.now().strftime("%H:%M:%S")
        print(f"[{timestamp}] NOTIFICATION: {format_notification(message, severity, action)}")
        return True


class LogSink(NotificationSink):
    """Write notifications to a logger instead of a screen."""

    name = "log"

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def notify(self, message, severity=Severity.INFO, action=None) -> bool:
        level = logging.ERROR if Severity(severity) == Severity.ERROR else logging.INFO
        self.log.log(level, format_notification(message, severity, action))
        return True


class TelegramSink(NotificationSink):
    """Send notifications via the Telegram Bot API.

    Tries Markdown formatting first, falls back to plain text.
    """

    name = "telegram"

    def __init__(self, bot_token: Optional[str] = None, chat_id: Optional[str] = None,
                 timeout: float = 10):
        self.bot_token = bot_token if bot_token is not None else os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.chat_id = chat_id if chat_id is not None else os.getenv("TELEGRAM_CHAT_ID", "")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def notify(self, message, severity=Severity.INFO, action=None) -> bool:
        if not self.configured:
            logger.warning("Telegram not configured (set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)")
            return False

        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"
        text = format_notification(message, severity, action)

        for parse_mode in ("Markdown", None):
            params = {"chat_id": self.chat_id, "text": text}
            if parse_mode:
                params["parse_mode"] = parse_mode
            data = urllib.parse.urlencode(params).encode()
            req = urllib.request.Request(url, data=data, method="POST")
            try:
                with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                    result = json.loads(resp.read())
            except urllib.error.HTTPError as e:
                if e.code == 400 and parse_mode:
                    logger.debug("Markdown parse failed, retrying as plain text")
                    continue
                raise
            if result.get("ok"):
                logger.info(f"Telegram sent: {text[:50]}...")
                return True
            logger.error(f"Telegram API error: {result}")
            return False
        return False


class MultiChannelSink(NotificationSink):
    """Fan out to several channels; console fallback if none delivered."""

    name = "multi"

    def __init__(self, channels: Sequence[NotificationSink], fallback: Optional[NotificationSink] = None):
        self.channels = list(channels)
        self.fallback = fallback if fallback is not None else ConsoleSink()
        self.last_results: Dict[str, bool] = {}

    def notify(self, message, severity=Severity.INFO, action=None) -> bool:
        results = {}
        for channel in self.channels:
            try:
                results[channel.name] = bool(channel.notify(message, severity, action))
            except Exception as e:
                logger.error(f"{channel.name} delivery failed: {e}")
                results[channel.name] = False

        if not any(results.values()):
            results[self.fallback.name] = self.fallback.notify(message, severity, action)

        self.last_results = results
        logger.info(f"notify results: {results}")
        return any(results.values())


def build_default_sink(console: bool = True) -> NotificationSink:
    """Telegram when configured, plus console or log output."""
    local = ConsoleSink() if console else LogSink()
    telegram = TelegramSink()
    if telegram.configured:
        return MultiChannelSink([telegram, local], fallback=local)
    return local
