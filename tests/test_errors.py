import pytest

from cadpager.errors import (
    CreateEventError,
    IncidentNotFoundError,
    IntegrationNotFoundError,
    InvalidInputParamsError,
    InvalidTokenError,
    PagerDutyError,
    PayloadFileNotFoundError,
    ServiceNotFoundError,
    UnmarshalError,
)


@pytest.mark.parametrize(
    "cls, prefix",
    [
        (InvalidTokenError, "the authToken that was provided is invalid"),
        (InvalidInputParamsError, "the escalation policy or incident id are invalid"),
        (IncidentNotFoundError, "the given incident was not found"),
        (ServiceNotFoundError, "the given service was not found"),
        (IntegrationNotFoundError, "the given integration was not found"),
        (CreateEventError, "failed to create event"),
        (UnmarshalError, "could not unmarshal the payloadFile"),
    ],
)
def test_message_wraps_inner_error(cls, prefix):
    inner = ValueError("inner problem")
    err = cls(inner)
    assert str(err) == f"{prefix}: inner problem"
    assert err.err is inner


@pytest.mark.parametrize(
    "cls",
    [
        InvalidTokenError,
        InvalidInputParamsError,
        IncidentNotFoundError,
        ServiceNotFoundError,
        IntegrationNotFoundError,
        CreateEventError,
        UnmarshalError,
    ],
)
def test_caught_as_base_class(cls):
    err = cls(RuntimeError("x"))
    with pytest.raises(PagerDutyError) as info:
        raise err
    assert info.value is err
    assert str(err).endswith(": x")
    assert str(err.err) == "x"


def test_distinct_kinds_do_not_match():
    err = InvalidTokenError(RuntimeError("a"))
    assert not isinstance(err, InvalidInputParamsError)
    assert str(err) == "the authToken that was provided is invalid: a"
    with pytest.raises(InvalidTokenError) as info:
        try:
            raise err
        except InvalidInputParamsError:
            pytest.fail("wrong kind matched")
    assert info.value is err


def test_file_not_found_message_includes_path():
    inner = FileNotFoundError("missing")
    err = PayloadFileNotFoundError(inner, "payload.json")
    assert str(err) == "the file 'payload.json' was not found in the filesystem: missing"
    assert err.file_path == "payload.json"
    assert err.err is inner