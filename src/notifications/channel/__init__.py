"""Channel adapter registry — pluggable notification dispatch channels.

Provides singleton access to channel adapters. Uses the fake email
adapter by default; a real provider can be configured via the
EMAIL_ADAPTER environment variable in production.
"""

import os

from notifications.channel.email_port import EmailPort
from notifications.kinds import NotificationChannel

_channel_instances: dict[str, EmailPort] = {}


def get_channel(channel_type: str = NotificationChannel.EMAIL.value) -> EmailPort:
    """Return the configured channel adapter (singleton per channel type)."""
    if channel_type not in _channel_instances:
        if channel_type != NotificationChannel.EMAIL.value:
            raise ValueError(f"Unknown channel type: {channel_type}")

        adapter = os.environ.get("EMAIL_ADAPTER", "fake")
        if adapter == "fake":
            from notifications.channel.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        else:
            raise ValueError(f"Unknown email adapter: {adapter}")

    return _channel_instances[channel_type]


def get_email_channel() -> EmailPort:
    return get_channel(NotificationChannel.EMAIL.value)


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
