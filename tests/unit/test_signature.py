"""Tests for Slack request signature verification."""

import pytest

from trendline.security import SignatureVerifier

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
NOW = 1_700_000_000


@pytest.fixture
def verifier():
    return SignatureVerifier(SECRET, clock=lambda: NOW)


def test_valid_signature_is_accepted(verifier):
    body = '{"type":"event_callback","event_id":"Ev1"}'
    timestamp = str(NOW)
    signature = verifier.compute_signature(timestamp, body)

    assert signature.startswith("v0=")
    assert verifier.verify(timestamp, signature, body)
    assert verifier.verify(timestamp, signature, body.encode("utf-8"))


def test_signature_matches_reference_computation():
    # Sample request from Slack's signing documentation
    verifier = SignatureVerifier(SECRET, clock=lambda: 1531420618)
    body = (
        "token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J&team_domain=testteamnow"
        "&channel_id=G8PSS9T3V&channel_name=foobar&user_id=U2CERLKJA"
        "&user_name=roadrunner&command=%2Fwebhook-collect&text="
        "&response_url=https%3A%2F%2Fhooks.slack.com%2Fcommands%2FT1DC2JH3J%2F397700885554%2F96rGlfmibIGlgcZRskXaIFfN"
        "&trigger_id=398738663015.47445629121.803a0bc887a14d10d2c447fce8b6703c"
    )
    assert verifier.verify(
        "1531420618",
        "v0=a2114d57b48eac39b9ad189dd8316235a7b4a8d21a10bd27519666489c69b503",
        body,
    )


def test_modified_body_is_rejected(verifier):
    timestamp = str(NOW)
    signature = verifier.compute_signature(timestamp, '{"text":"hello"}')
    assert not verifier.verify(timestamp, signature, '{"text":"hellO"}')


def test_wrong_secret_is_rejected(verifier):
    timestamp = str(NOW)
    other = SignatureVerifier("another-secret", clock=lambda: NOW)
    signature = other.compute_signature(timestamp, "{}")
    assert not verifier.verify(timestamp, signature, "{}")


@pytest.mark.parametrize("offset", [-301, 301, -3600])
def test_timestamp_outside_window_is_rejected(verifier, offset):
    timestamp = str(NOW + offset)
    signature = verifier.compute_signature(timestamp, "{}")
    assert not verifier.verify(timestamp, signature, "{}")


@pytest.mark.parametrize("offset", [-300, 0, 300])
def test_timestamp_at_window_edge_is_accepted(verifier, offset):
    timestamp = str(NOW + offset)
    signature = verifier.compute_signature(timestamp, "{}")
    assert verifier.verify(timestamp, signature, "{}")


def test_non_numeric_timestamp_is_rejected(verifier):
    signature = verifier.compute_signature("soon", "{}")
    assert not verifier.verify("soon", signature, "{}")


@pytest.mark.parametrize(
    "timestamp, signature, body",
    [
        (None, "v0=abc", "{}"),
        (str(NOW), None, "{}"),
        (str(NOW), "v0=abc", None),
    ],
)
def test_missing_inputs_are_rejected(verifier, timestamp, signature, body):
    assert not verifier.verify(timestamp, signature, body)


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        SignatureVerifier("")
