"""
Shared test utilities.

Re-exports the fakes for convenient imports:
    from devicepush.testing import RecordingNotificationSink, RecordingGatewayTransport
"""

from devicepush.testing.fakes import (
    RecordingGatewayTransport,
    RecordingNotificationSink,
)

__all__ = [
    "RecordingGatewayTransport",
    "RecordingNotificationSink",
]
