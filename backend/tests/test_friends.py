from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from glamscan import models


def send_request(client: TestClient, addressee_id: int):
    return client.post("/_api/friends/send-request", json={"addresseeId": addressee_id})


def respond(client: TestClient, requester_id: int, action: str):
    return client.post("/_api/friends/respond-request", json={"requesterId": requester_id, "action": action})


def test_send_request_creates_pending_row_and_notification(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    alice = make_user(display_name="Alice")
    bob = make_user(display_name="Bob")
    login_as(alice)

    response = send_request(client, bob.id)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True}
    row = db_session_for_tests.query(models.Friend).one()
    assert (row.requester_id, row.addressee_id, row.status) == (alice.id, bob.id, "pending")
    notification = db_session_for_tests.query(models.Notification).filter(models.Notification.user_id == bob.id).one()
    assert notification.type == "friend_request"
    assert notification.title == "New Friend Request"
    assert notification.message == "Alice sent you a friend request."
    assert notification.data == {"requesterId": alice.id, "requesterName": "Alice"}


def test_send_request_rejections(client: TestClient, make_user, login_as):
    alice = make_user()
    bob = make_user()
    login_as(alice)

    assert send_request(client, alice.id).status_code == status.HTTP_400_BAD_REQUEST
    assert send_request(client, 98765).status_code == status.HTTP_404_NOT_FOUND

    send_request(client, bob.id)
    response = send_request(client, bob.id)
    assert response.json()["detail"] == "A friend request is already pending with this user."

    # The reverse direction counts as the same relationship
    login_as(bob)
    assert send_request(client, alice.id).json()["detail"] == "A friend request is already pending with this user."

    respond(client, alice.id, "accept")
    assert send_request(client, alice.id).json()["detail"] == "You are already friends with this user."


def test_accept_request_notifies_requester(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    alice = make_user(display_name="Alice")
    bob = make_user(display_name="Bob")
    login_as(alice)
    send_request(client, bob.id)

    login_as(bob)
    response = respond(client, alice.id, "accept")

    assert response.json() == {"success": True, "action": "accept"}
    assert db_session_for_tests.query(models.Friend).one().status == "accepted"
    accepted = db_session_for_tests.query(models.Notification).filter(models.Notification.type == "friend_accepted").one()
    assert accepted.user_id == alice.id
    assert accepted.message == "Bob accepted your friend request."

    friends_of_alice = login_as(alice).get("/_api/friends/list").json()
    assert [f["id"] for f in friends_of_alice] == [bob.id]
    friends_of_bob = login_as(bob).get("/_api/friends/list", params={"filter": "all"}).json()
    assert [f["displayName"] for f in friends_of_bob] == ["Alice"]


def test_decline_request_removes_it(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    alice = make_user()
    bob = make_user()
    login_as(alice)
    send_request(client, bob.id)

    login_as(bob)
    assert respond(client, alice.id, "decline").json()["action"] == "decline"
    assert db_session_for_tests.query(models.Friend).count() == 0
    assert respond(client, alice.id, "decline").status_code == status.HTTP_404_NOT_FOUND


def test_block_request(client: TestClient, make_user, login_as, db_session_for_tests: Session):
    alice = make_user()
    bob = make_user()
    login_as(alice)
    send_request(client, bob.id)

    login_as(bob)
    respond(client, alice.id, "block")
    row = db_session_for_tests.query(models.Friend).one()
    assert (row.requester_id, row.addressee_id, row.status) == (bob.id, alice.id, "blocked")

    blocked = client.get("/_api/friends/list", params={"filter": "blocked"}).json()
    assert [b["id"] for b in blocked] == [alice.id]
    assert send_request(client, alice.id).json()["detail"] == "You have blocked this user."

    login_as(alice)
    assert send_request(client, bob.id).json()["detail"] == "You cannot send a request to this user."


def test_pending_lists(client: TestClient, make_user, login_as):
    alice = make_user()
    bob = make_user()
    login_as(alice)
    send_request(client, bob.id)

    sent = client.get("/_api/friends/list", params={"filter": "pending_sent"}).json()
    assert [(s["id"], s["requesterId"]) for s in sent] == [(bob.id, None)]

    login_as(bob)
    received = client.get("/_api/friends/list", params={"filter": "pending_received"}).json()
    assert [(r["id"], r["requesterId"]) for r in received] == [(alice.id, alice.id)]


def test_search_users(client: TestClient, make_user, login_as):
    me = make_user(display_name="Stylish Searcher", email="searcher@example.com")
    sam = make_user(display_name="Stylish Sam", email="sam@example.com")
    stella = make_user(display_name="Stylish Stella", email="stella@example.com")
    make_user(display_name="Unrelated", email="nobody@example.com")
    login_as(me)
    send_request(client, sam.id)

    results = client.get("/_api/friends/search", params={"query": "styl"}).json()

    # The caller never shows up in their own results
    assert [r["id"] for r in results] == [sam.id, stella.id]
    assert (results[0]["friendStatus"], results[0]["isRequestSentByMe"]) == ("pending", True)
    assert (results[1]["friendStatus"], results[1]["isRequestSentByMe"]) == (None, False)

    by_email = client.get("/_api/friends/search", params={"query": "SAM@"}).json()
    assert [r["id"] for r in by_email] == [sam.id]

    assert client.get("/_api/friends/search", params={"query": "s"}).status_code == status.HTTP_400_BAD_REQUEST


def test_search_hides_users_who_blocked_me(client: TestClient, make_user, login_as):
    me = make_user(display_name="Me Myself")
    blocker = make_user(display_name="Grumpy Gus")
    login_as(me)
    send_request(client, blocker.id)
    login_as(blocker)
    respond(client, me.id, "block")

    login_as(me)
    assert client.get("/_api/friends/search", params={"query": "grumpy"}).json() == []

    login_as(blocker)
    results = client.get("/_api/friends/search", params={"query": "myself"}).json()
    assert [(r["id"], r["friendStatus"], r["isRequestSentByMe"]) for r in results] == [(me.id, "blocked", True)]


def test_search_treats_wildcards_literally(client: TestClient, make_user, login_as):
    me = make_user(display_name="Searcher")
    ada = make_user(display_name="Ada 100% Real", email="ada@example.com")
    make_user(display_name="Plain Jane", email="jane@example.com")
    login_as(me)

    assert client.get("/_api/friends/search", params={"query": "%%"}).json() == []
    assert client.get("/_api/friends/search", params={"query": "__"}).json() == []
    assert [r["id"] for r in client.get("/_api/friends/search", params={"query": "0% r"}).json()] == [ada.id]


def test_respond_without_pending_request_is_404(client: TestClient, make_user, login_as):
    me, stranger = make_user(), make_user()
    login_as(me)

    response = respond(client, stranger.id, "accept")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Friend request not found or already handled."
