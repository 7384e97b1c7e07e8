import pytest
from starlette.websockets import WebSocketDisconnect


@pytest.fixture
def workspace(client):
    return client.post("/api/workspaces", json={"name": "Live Room"}).json()


def test_socket_acknowledges_and_answers_ping(client, workspace):
    participant = client.post(
        f"/api/workspaces/{workspace['id']}/participants", json={"display_name": "Ada"}
    ).json()

    url = f"/ws/workspaces/{workspace['id']}?participantId={participant['id']}"
    with client.websocket_connect(url) as socket:
        ack = socket.receive_json()
        assert ack["type"] == "connection_ack"
        assert ack["payload"]["participantId"] == participant["id"]
        assert ack["meta"]["workspaceId"] == workspace["id"]

        socket.send_json({"type": "ping"})
        assert socket.receive_json()["type"] == "pong"

        socket.send_json({"type": "shout"})
        error = socket.receive_json()
        assert error["type"] == "error"
        assert "shout" in error["payload"]["message"]


def test_socket_accepts_join_code_and_foreign_participant_is_anonymous(client, workspace):
    url = f"/ws/workspaces/{workspace['code']}?participantId=someone-else"
    with client.websocket_connect(url) as socket:
        ack = socket.receive_json()
        assert ack["meta"]["workspaceId"] == workspace["id"]
        assert ack["payload"]["participantId"] is None


def test_writes_are_pushed_to_connected_clients(client, workspace):
    with client.websocket_connect(f"/ws/workspaces/{workspace['id']}") as socket:
        socket.receive_json()
        client.post(f"/api/workspaces/{workspace['id']}/notes", json={"content": "Live idea"})
        event = socket.receive_json()
        assert event["type"] == "note_created"


def test_unknown_workspace_is_closed(client):
    with pytest.raises(WebSocketDisconnect) as closed:
        with client.websocket_connect("/ws/workspaces/missing") as socket:
            socket.receive_json()
    assert closed.value.code == 1008
