"""PagerDuty incident handling for automated anomaly investigations: client, errors, alert types and retries."""

__version__ = "0.1.0"
__all__ = ["errors", "types", "retry", "pagerduty"]