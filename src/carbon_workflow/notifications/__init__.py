from carbon_workflow.notifications.sinks import (
    FanoutNotificationSink,
    LoggingNotificationSink,
    NotificationDeliveryError,
    TimelineNotificationSink,
    WebhookNotificationSink,
    build_notification_sink,
)

__all__ = [
    "FanoutNotificationSink",
    "LoggingNotificationSink",
    "NotificationDeliveryError",
    "TimelineNotificationSink",
    "WebhookNotificationSink",
    "build_notification_sink",
]
