# cadpager

`cadpager` helps automated investigations handle PagerDuty incidents. You pass it
the webhook payload that PagerDuty sent. You can then:

- read the incident's metadata
- find the cluster ID that the alert refers to
- add notes
- silence or escalate the incident
- change the incident's title

It talks to the PagerDuty REST API through `requests`.

## Installation

```
pip install cadpager
```

To run the test suite, install the `test` extra and run pytest:

```
pip install "cadpager[test]"
pytest
```

## Creating a client

`cadpager.pagerduty.get_pd_client(webhook_payload)` builds a client from two
environment variables. Both must be set, or it raises `RuntimeError`:

- `CAD_PD_TOKEN` is the PagerDuty API token.
- `CAD_SILENT_POLICY` is the ID of the escalation policy used to silence incidents.

```python
from cadpager.pagerduty import get_pd_client

client = get_pd_client(webhook_payload_bytes)
```

You can also construct `SdkClient` directly. This lets you choose the API
endpoint, which defaults to `https://api.pagerduty.com`. It also lets you pass
your own `requests.Session`:

```python
from cadpager.pagerduty import SdkClient

client = SdkClient(
    "PSILENT",
    webhook_payload_bytes,
    "token",
    api_endpoint="https://api.pagerduty.example.com",
)
```

The payload can be `bytes` or `str`. Two shapes are accepted.

**Webhook v3 payloads.** These must carry all of the following:

- `event.event_type`
- `event.data.service.id`
- `event.data.service.summary`
- `event.data.title`
- `event.data.id`
- `event.data.html_url`

**Event orchestration payloads.** These look like
`{"__pd_metadata": {"incident": {"id": "..."}}}`. For this shape, the
constructor fetches the incident from `GET /incidents/<id>`.

The client tries the v3 shape first and falls back to the orchestration shape.
It raises `cadpager.errors.UnmarshalError` in these cases:

- the payload is not a JSON object;
- a field has the wrong type;
- neither shape has its required fields.

The two parsers are also available on their own:

- `parse_webhook_v3(data)` returns an `IncidentData`.
- `parse_event_orchestration_webhook(data)` returns the incident ID.

## Working with the incident

```python
client.incident_id        # properties, read-only
client.title
client.service_id
client.service_name
client.incident_ref
client.silent_escalation_policy

cluster_id = client.retrieve_cluster_id()  # asks the API once, then cached

client.add_note("Investigation finished")
client.add_note_to_incident("PINCIDENT", "note for another incident")
client.silence_incident()                  # move to the silent escalation policy
client.silence_incident_with_note("Known issue, silencing")
client.move_to_escalation_policy("PPOLICY")
client.escalate_incident()                 # sets escalation level 2
client.escalate_incident_with_note("Needs a human")
client.update_incident_title("[investigated] original title")
```

The `*_with_note` methods add the note first, and only when it is non-empty.
Updates are sent with a `From: cad@example.com` header.

The client always escalates to level 2. It cannot read the incident's current
level, so it assumes level 1.

If the API reports "Incident Already Resolved", moving to an escalation policy
and escalating are skipped without error.

### Cluster IDs

`retrieve_cluster_id()` reads the incident's alerts and returns the first
non-empty cluster ID. If it finds none, it raises `LookupError`.

In each alert body, the cluster ID is read from `details.cluster_id`. If that is
not present, it falls back to a YAML `cluster_id` entry inside `details.notes`.
This works with data you have already fetched:

- `get_alerts_for_incident(incident_id)` returns `IncidentAlert` objects.
- `get_alert_list_details(alerts)` returns `cadpager.types.AlertDetails`.
- `extract_alert_details(alert)` handles a single alert.
- `extract_cluster_id_from_alert_body(body)` works on the raw alert body.

These functions raise `ValueError` when a body has no usable cluster ID.

## Errors

HTTP failures are mapped as follows:

| Response | Exception |
| --- | --- |
| 401 | `cadpager.errors.InvalidTokenError` |
| 400 with error code 2001 | `cadpager.errors.InvalidInputParamsError` |
| 404 when adding a note or listing alerts | `cadpager.errors.IncidentNotFoundError` |
| any other non-success response | `cadpager.pagerduty.APIError`, which has `status_code`, `error_object` and `code` |

The methods that update the incident re-raise these cases as `RuntimeError` with
a short prefix:

- moving to an escalation policy
- escalating
- retitling
- the note step of `*_with_note`

Typed errors (subclasses of `PagerDutyError`) are the exception: they pass
through unchanged.

Every `PagerDutyError` keeps its cause on `.err`. The module also defines the
following classes, for callers to use in their own code:

- `ServiceNotFoundError`
- `IntegrationNotFoundError`
- `CreateEventError`
- `PayloadFileNotFoundError(err, file_path)`

The client itself does not raise these.

## Alert types

`cadpager.types` holds plain dataclasses:

- `AlertDetails(id, cluster_id)`
- `NewAlert(description, details)`
- `NewAlertCustomDetails(cluster_id, error, resolution, sop)`

`NewAlertCustomDetails.to_dict()` returns the details under the keys
`"Cluster ID"`, `"Error"`, `"Resolution"` and `"SOP"`.

## Retrying

```python
from cadpager.retry import with_retries, with_retries_configurable

with_retries(lambda: client.add_note("hello"))
result = with_retries_configurable(3, 0.5, flaky_call)
```

Both functions call the function until it succeeds and return its result. Each
failure is logged as a warning. If every attempt fails, they raise `RuntimeError`
chained to the last exception.

- `with_retries` makes up to 10 attempts. It sleeps 2 seconds before the first
  retry and doubles the sleep each time after that.
- `with_retries_configurable(count, initial_backoff, fn)` lets you set the number
  of attempts and the first sleep, in seconds.

## What it does not do

`cadpager` is a library only. It does not provide:

- a command-line tool;
- a server that receives webhooks;
- a way to create PagerDuty events or incidents.

You must hand it a webhook payload that you have already received.