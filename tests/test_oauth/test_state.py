"""Tests for the OAuth state codec."""

import base64
import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from insighter_server.oauth.state import (
    STATE_MAX_AGE_MS,
    InvalidStateError,
    StateExpiredError,
    create_state,
    decode_state,
    encode_state,
    verify_state,
)

ids = st.text(min_size=1, max_size=40)
NOW = 1_700_000_000_000


class TestCodec:

    def test_wire_format_uses_camel_case(self):
        state = create_state("ws-1", "google-docs", "user-1", document_id="doc-1", timestamp=NOW)
        payload = json.loads(base64.b64decode(encode_state(state)))
        assert payload == {
            "workspaceId": "ws-1",
            "connectionType": "google-docs",
            "userId": "user-1",
            "timestamp": NOW,
            "documentId": "doc-1",
        }

    def test_document_id_omitted_when_absent(self):
        payload = json.loads(base64.b64decode(encode_state(create_state("ws", "google-sheets", "u"))))
        assert "documentId" not in payload

    def test_decodes_externally_built_state(self):
        raw = {"workspaceId": "w", "connectionType": "google-sheets", "userId": "u", "timestamp": NOW}
        state = decode_state(base64.b64encode(json.dumps(raw).encode()).decode())
        assert state.workspace_id == "w"
        assert state.document_id is None

    @settings(max_examples=100)
    @given(workspace_id=ids, user_id=ids, document_id=st.none() | ids, timestamp=st.integers(0, 2**53))
    def test_decode_inverts_encode(self, workspace_id, user_id, document_id, timestamp):
        state = create_state(workspace_id, "google-sheets", user_id, document_id, timestamp)
        assert decode_state(encode_state(state)) == state

    @pytest.mark.parametrize(
        "encoded",
        [
            "",
            "%%%",
            base64.b64encode(b"not json").decode(),
            base64.b64encode(b'"a string"').decode(),
            base64.b64encode(b'{"workspaceId": "w"}').decode(),
            base64.b64encode(b"\xff\xfe").decode(),
        ],
    )
    def test_malformed_state_rejected(self, encoded):
        with pytest.raises(InvalidStateError):
            decode_state(encoded)


class TestVerify:

    def test_fresh_state_for_caller_passes(self):
        verify_state(create_state("w", "google-sheets", "u", timestamp=NOW), "u", current_ms=NOW + 1000)

    def test_boundary_is_inclusive(self):
        state = create_state("w", "google-sheets", "u", timestamp=NOW)
        verify_state(state, "u", current_ms=NOW + STATE_MAX_AGE_MS)
        with pytest.raises(StateExpiredError):
            verify_state(state, "u", current_ms=NOW + STATE_MAX_AGE_MS + 1)

    def test_other_user_rejected(self):
        with pytest.raises(InvalidStateError):
            verify_state(create_state("w", "google-sheets", "u", timestamp=NOW), "intruder", current_ms=NOW)

    @settings(max_examples=100)
    @given(
        workspace_id=ids,
        state_user=ids,
        caller=ids,
        age=st.integers(STATE_MAX_AGE_MS + 1, 10**10),
    )
    def test_stale_state_always_expired(self, workspace_id, state_user, caller, age):
        state = create_state(workspace_id, "google-analytics", state_user, timestamp=NOW)
        with pytest.raises(StateExpiredError):
            verify_state(state, caller, current_ms=NOW + age)
