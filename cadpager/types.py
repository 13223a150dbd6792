"""Plain data types describing PagerDuty alerts."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AlertDetails:
    """The details CAD needs from an alert."""

    id: str = ""
    cluster_id: str = ""  # internal or external cluster id


@dataclass
class NewAlertCustomDetails:
    """Custom details shown on a PagerDuty incident."""

    cluster_id: str = ""
    error: str = ""
    resolution: str = ""
    sop: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the details keyed by their wire names."""
        return {
            "Cluster ID": self.cluster_id,
            "Error": self.error,
            "Resolution": self.resolution,
            "SOP": self.sop,
        }


@dataclass
class NewAlert:
    """An alert to create on PagerDuty; the description titles the incident."""

    description: str = ""
    details: NewAlertCustomDetails = field(default_factory=NewAlertCustomDetails)