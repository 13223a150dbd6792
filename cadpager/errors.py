"""Exceptions raised by the PagerDuty client."""

from __future__ import annotations


class PagerDutyError(Exception):
    """Base class for PagerDuty failures; wraps the underlying error."""

    _prefix = "pagerduty error"

    def __init__(self, err):
        super().__init__(err)
        self.err = err

    def __str__(self) -> str:
        return f"{self._prefix}: {self.err}"


class InvalidTokenError(PagerDutyError):
    """The auth token was rejected by the API."""

    _prefix = "the authToken that was provided is invalid"


class InvalidInputParamsError(PagerDutyError):
    """The escalation policy or incident id were rejected by the API."""

    _prefix = "the escalation policy or incident id are invalid"


class IncidentNotFoundError(PagerDutyError):
    """The incident does not exist."""

    _prefix = "the given incident was not found"


class ServiceNotFoundError(PagerDutyError):
    """A PagerDuty service could not be retrieved."""

    _prefix = "the given service was not found"


class IntegrationNotFoundError(PagerDutyError):
    """A service integration could not be found."""

    _prefix = "the given integration was not found"


class CreateEventError(PagerDutyError):
    """Creating a PagerDuty event failed."""

    _prefix = "failed to create event"


class PayloadFileNotFoundError(PagerDutyError):
    """A payload file was missing from the filesystem."""

    def __init__(self, err, file_path):
        super().__init__(err)
        self.file_path = file_path

    def __str__(self) -> str:
        return f"the file '{self.file_path}' was not found in the filesystem: {self.err}"


class UnmarshalError(PagerDutyError):
    """A webhook payload could not be decoded."""

    _prefix = "could not unmarshal the payloadFile"