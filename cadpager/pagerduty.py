"""A PagerDuty REST client scoped to the incident named by a webhook payload."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import requests
import yaml

from cadpager.errors import (
    IncidentNotFoundError,
    InvalidInputParamsError,
    InvalidTokenError,
    PagerDutyError,
    UnmarshalError,
)
from cadpager.types import AlertDetails

_log = logging.getLogger(__name__)

INVALID_INPUT_PARAMS_ERROR_CODE = 2001
PAGERDUTY_TIMEOUT = 30.0
CAD_EMAIL_ADDRESS = "cad@example.com"
CAD_INTEGRATION_NAME = "Dead Man's Snitch"
DEFAULT_API_ENDPOINT = "https://api.pagerduty.com"

INCIDENT_RESOLVED = "incident.resolved"
INCIDENT_TRIGGERED = "incident.triggered"
INCIDENT_ESCALATED = "incident.escalated"
INCIDENT_REOPENED = "incident.reopened"

_ALREADY_RESOLVED = "Incident Already Resolved"


class Client(ABC):
    """The operations CAD performs on the incident it was started for."""

    @abstractmethod
    def silence_incident(self) -> None:
        """Move the incident to the silent escalation policy."""

    @abstractmethod
    def silence_incident_with_note(self, notes: str) -> None:
        """Attach notes, then silence the incident."""

    @abstractmethod
    def add_note(self, note_content: str) -> None:
        """Attach a note to the incident."""

    @property
    @abstractmethod
    def service_id(self) -> str:
        """The id of the service holding the incident."""

    @abstractmethod
    def escalate_incident_with_note(self, notes: str) -> None:
        """Attach notes, then escalate the incident."""

    @abstractmethod
    def escalate_incident(self) -> None:
        """Escalate the incident."""

    @abstractmethod
    def update_incident_title(self, title: str) -> None:
        """Change the incident's title."""


@dataclass(frozen=True)
class IncidentData:
    """What CAD knows about the incident it handles."""

    incident_title: str = ""
    incident_id: str = ""
    incident_ref: str = ""
    service_id: str = ""
    service_summary: str = ""


@dataclass(frozen=True)
class IncidentAlert:
    """An alert attached to an incident, as returned by the API."""

    id: str = ""
    body: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> IncidentAlert:
        body = data.get("body")
        return cls(id=str(data.get("id") or ""), body=body if isinstance(body, dict) else None)


class APIError(Exception):
    """A non-success HTTP response from the PagerDuty API."""

    def __init__(self, status_code: int, error_object: Mapping[str, Any] | None = None):
        super().__init__(status_code, error_object)
        self.status_code = status_code
        self.error_object = dict(error_object) if error_object is not None else None

    @property
    def code(self) -> int | None:
        if self.error_object is None:
            return None
        return self.error_object.get("code")

    @classmethod
    def from_response(cls, response: requests.Response) -> APIError:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        error_object = payload.get("error") if isinstance(payload, dict) else None
        return cls(response.status_code, error_object if isinstance(error_object, dict) else None)

    def __str__(self) -> str:
        if self.error_object is None:
            return (
                f"HTTP response failed with status code {self.status_code} "
                "and no JSON error object was present"
            )
        text = (
            f"HTTP response failed with status code {self.status_code}, "
            f"message: {self.error_object.get('message', '')} (code: {self.code})"
        )
        errors = self.error_object.get("errors")
        if errors:
            text += ": " + ", ".join(str(e) for e in errors)
        return text


def _common_error(err: APIError) -> PagerDutyError | None:
    """Map well-known API failures to their typed errors."""
    if err.status_code == 401:
        return InvalidTokenError(err)
    if (
        err.status_code == 400
        and err.error_object is not None
        and err.code == INVALID_INPUT_PARAMS_ERROR_CODE
    ):
        return InvalidInputParamsError(err)
    return None


def _not_found_aware(err: APIError) -> Exception:
    common = _common_error(err)
    if common is not None:
        return common
    if err.status_code == 404:
        # Happens for ids that are not valid incidents, e.g. numbers with leading zeroes.
        return IncidentNotFoundError(err)
    return err


@contextmanager
def _wrapped(message: str) -> Iterator[None]:
    """Keep typed PagerDuty errors as they are; prefix anything else with message."""
    try:
        yield
    except PagerDutyError:
        raise
    except Exception as err:
        raise RuntimeError(f"{message}: {err}") from err


def _decode(data: bytes | str) -> dict[str, Any]:
    try:
        decoded = json.loads(data)
    except (ValueError, TypeError) as err:
        raise UnmarshalError(err) from err
    if not isinstance(decoded, dict):
        raise UnmarshalError(ValueError("payload is not a JSON object"))
    return decoded


def _field(obj: Mapping[str, Any], *path: str) -> str:
    """Fetch a string at path; missing or null gives "", a wrong type raises."""
    current: Any = obj
    for key in path[:-1]:
        current = current.get(key)
        if current is None:
            return ""
        if not isinstance(current, dict):
            raise UnmarshalError(TypeError(f"field {key!r} is not an object"))
    value = current.get(path[-1])
    if value is None:
        return ""
    if not isinstance(value, str):
        raise UnmarshalError(TypeError(f"field {path[-1]!r} is not a string"))
    return value


def parse_webhook_v3(data: bytes | str) -> IncidentData:
    """Parse a PagerDuty v3 webhook carrying an incident."""
    payload = _decode(data)
    event_type = _field(payload, "event", "event_type")
    service_id = _field(payload, "event", "data", "service", "id")
    summary = _field(payload, "event", "data", "service", "summary")
    title = _field(payload, "event", "data", "title")
    incident_id = _field(payload, "event", "data", "id")
    incident_ref = _field(payload, "event", "data", "html_url")

    for value, name in (
        (event_type, "event_type"),
        (service_id, "ServiceID"),
        (summary, "Summary"),
        (title, "Title"),
        (incident_id, "IncidentID"),
        (incident_ref, "IncidentRef"),
    ):
        if not value:
            raise UnmarshalError(ValueError(f"payload is missing field: {name}"))

    return IncidentData(
        incident_title=title,
        incident_id=incident_id,
        incident_ref=incident_ref,
        service_id=service_id,
        service_summary=summary,
    )


def parse_event_orchestration_webhook(data: bytes | str) -> str:
    """Return the incident id from an event orchestration webhook payload."""
    payload = _decode(data)
    incident_id = _field(payload, "__pd_metadata", "incident", "id")
    if not incident_id:
        raise UnmarshalError(ValueError("payload is missing field: ID"))
    return incident_id


def extract_cluster_id_from_alert_body(data: Mapping[str, Any] | None) -> str:
    """Find the cluster id in an alert body, in the current or the legacy notes format."""
    details = data.get("details") if isinstance(data, Mapping) else None
    if not isinstance(details, Mapping):
        raise ValueError("could not find alert details field")

    cluster_id = details.get("cluster_id")
    if isinstance(cluster_id, str):
        return cluster_id
    _log.warning("Unable to parse cluster_id as direct field directly from the alert details.")

    # Older alerts carry the cluster id as YAML inside the notes field.
    _log.warning("Trying to parse cluster_id from the notes field...")
    notes = details.get("notes")
    if not isinstance(notes, str):
        raise ValueError("could not find notes field")

    try:
        parsed = yaml.load(notes, Loader=yaml.BaseLoader)
    except yaml.YAMLError as err:
        raise ValueError(f"error decoding notes YAML: {err}") from err
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ValueError("error decoding notes YAML: notes are not a mapping")

    cluster_id = parsed.get("cluster_id")
    if not isinstance(cluster_id, str) or not cluster_id:
        raise ValueError("could not find cluster_id field in notes")
    return cluster_id


def extract_alert_details(alert: IncidentAlert) -> AlertDetails:
    """Build the AlertDetails CAD needs from an alert."""
    _log.debug("Extracting clusterID from alert body: %s", alert.body)
    try:
        cluster_id = extract_cluster_id_from_alert_body(alert.body)
    except ValueError as err:
        raise ValueError(f"failed to extractClusterIDFromAlertBody: {err}") from err
    return AlertDetails(id=alert.id, cluster_id=cluster_id)


class SdkClient(Client):
    """PagerDuty client bound to the incident described by a webhook payload."""

    def __init__(
        self,
        silent_policy: str,
        webhook_payload: bytes | str,
        auth_token: str,
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        session: requests.Session | None = None,
    ):
        self._silent_escalation_policy = silent_policy
        self._api_endpoint = api_endpoint.rstrip("/")
        self._session = session if session is not None else requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Token token={auth_token}",
                "Accept": "application/vnd.pagerduty+json;version=2",
                "Content-Type": "application/json",
            }
        )
        self._cluster_id: str | None = None
        self._incident_data = self._initialize_incident_data(webhook_payload)

    def _initialize_incident_data(self, payload: bytes | str) -> IncidentData:
        _log.debug("Attempting to unmarshal webhookV3...")
        try:
            return parse_webhook_v3(payload)
        except UnmarshalError as err:
            _log.info(
                "Could not unmarshal as pagerduty webhook V3: %s. "
                "re-trying to unmarshall for different payload types...",
                err,
            )

        _log.debug("Attempting to unmarshal EventOrchestrationWebhook...")
        incident_id = parse_event_orchestration_webhook(payload)
        incident = self._request("GET", f"/incidents/{incident_id}").get("incident") or {}
        service = incident.get("service") or {}
        return IncidentData(
            incident_title=incident.get("title", ""),
            incident_id=incident.get("id", ""),
            incident_ref=incident.get("html_url", ""),
            service_id=service.get("id", ""),
            service_summary=service.get("summary", ""),
        )

    def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        response = self._session.request(
            method,
            f"{self._api_endpoint}{path}",
            json=body,
            headers=dict(headers or {}),
            timeout=PAGERDUTY_TIMEOUT,
        )
        if not response.ok:
            raise APIError.from_response(response)
        if not response.content:
            return {}
        decoded = response.json()
        return decoded if isinstance(decoded, dict) else {}

    @property
    def service_id(self) -> str:
        return self._incident_data.service_id

    @property
    def service_name(self) -> str:
        return self._incident_data.service_summary

    @property
    def title(self) -> str:
        return self._incident_data.incident_title

    @property
    def incident_id(self) -> str:
        return self._incident_data.incident_id

    @property
    def incident_ref(self) -> str:
        return self._incident_data.incident_ref

    @property
    def silent_escalation_policy(self) -> str:
        return self._silent_escalation_policy

    def retrieve_cluster_id(self) -> str:
        """Return the cluster id of the incident's alert, asking the API only once."""
        if self._cluster_id is not None:
            return self._cluster_id

        alerts = self.get_alerts_for_incident(self.incident_id)
        details = self.get_alert_list_details(alerts)
        if len(details) > 1:
            _log.warning(
                "There should be only one alert on each incident, "
                "taking the first result of incident: %s",
                self.incident_id,
            )
        for alert in details:
            if alert.cluster_id:
                self._cluster_id = alert.cluster_id
                return alert.cluster_id
        raise LookupError("could not find a clusterID in the given alerts")

    def _update_incident(self, options: Mapping[str, Any]) -> None:
        incident = {"id": self.incident_id, "type": "incident_reference", **options}
        try:
            self._request(
                "PUT",
                "/incidents",
                body={"incidents": [incident]},
                headers={"From": CAD_EMAIL_ADDRESS},
            )
        except APIError as err:
            common = _common_error(err)
            if common is not None:
                raise common from err
            raise

    def move_to_escalation_policy(self, escalation_policy_id: str) -> None:
        """Reassign the incident to another escalation policy."""
        _log.info("Moving to escalation policy: %s", escalation_policy_id)
        with _wrapped("could not update the escalation policy"):
            try:
                self._update_incident(
                    {
                        "escalation_policy": {
                            "type": "escalation_policy_reference",
                            "id": escalation_policy_id,
                        }
                    }
                )
            except Exception as err:
                if _ALREADY_RESOLVED in str(err):
                    _log.info(
                        "Skipped moving alert to escalation policy '%s', "
                        "alert is already resolved.",
                        escalation_policy_id,
                    )
                    return
                raise

    def add_note(self, note_content: str) -> None:
        self.add_note_to_incident(self.incident_id, note_content)

    def add_note_to_incident(self, incident_id: str, note_content: str) -> None:
        """Attach a note to the given incident."""
        _log.info("Attaching Note: %s", note_content)
        try:
            self._request(
                "POST",
                f"/incidents/{incident_id}/notes",
                body={"note": {"content": note_content}},
                headers={"From": CAD_EMAIL_ADDRESS},
            )
        except APIError as err:
            mapped = _not_found_aware(err)
            if mapped is err:
                raise
            raise mapped from err

    def get_alerts_for_incident(self, incident_id: str) -> list[IncidentAlert]:
        """List the alerts attached to an incident."""
        try:
            response = self._request("GET", f"/incidents/{incident_id}/alerts")
        except APIError as err:
            mapped = _not_found_aware(err)
            if mapped is err:
                raise
            raise mapped from err
        return [IncidentAlert.from_dict(a) for a in response.get("alerts") or [] if isinstance(a, dict)]

    def get_alert_list_details(self, alert_list: list[IncidentAlert]) -> list[AlertDetails]:
        """Extract AlertDetails from each alert, keeping their order."""
        result = []
        for alert in alert_list:
            try:
                result.append(extract_alert_details(alert))
            except ValueError as err:
                raise ValueError(
                    f"could not extract alert details from alert '{alert.id}': {err}"
                ) from err
        return result

    def silence_incident(self) -> None:
        self.move_to_escalation_policy(self.silent_escalation_policy)

    def silence_incident_with_note(self, notes: str) -> None:
        if notes:
            with _wrapped("failed to attach notes to incident"):
                self.add_note(notes)
        self.silence_incident()

    def escalate_incident_with_note(self, notes: str) -> None:
        if notes:
            with _wrapped("failed to attach notes to incident"):
                self.add_note(notes)
        self.escalate_incident()

    def escalate_incident(self) -> None:
        """Escalate to level 2; the current level cannot be queried, so level 1 is assumed."""
        with _wrapped("could not escalate the incident"):
            try:
                self._update_incident({"escalation_level": 2})
            except Exception as err:
                if _ALREADY_RESOLVED in str(err):
                    _log.info("Skipped escalating incident as it is already resolved.")
                    return
                raise

    def update_incident_title(self, title: str) -> None:
        with _wrapped("failed to update incident"):
            self._update_incident({"title": title})


def get_pd_client(webhook_payload: bytes | str) -> SdkClient:
    """Build a client from CAD_PD_TOKEN and CAD_SILENT_POLICY in the environment."""
    token = os.environ.get("CAD_PD_TOKEN")
    silent_policy = os.environ.get("CAD_SILENT_POLICY")
    if token is None or silent_policy is None:
        raise RuntimeError(
            "one of the required envvars in the list "
            "'(CAD_SILENT_POLICY CAD_PD_TOKEN)' is missing"
        )
    return SdkClient(silent_policy, webhook_payload, token)