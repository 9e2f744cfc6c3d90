"""Guestbook messages: posting, ordering and author-only deletion."""

from conftest import sign_in
from redcloud.crud import guestbook as crud
from redcloud.crud.users import create_user, delete_user
from redcloud.models.guestbook import GuestbookMessage


def test_post_and_list_newest_first(signed_in):
    client, user = signed_in
    for text in ["first", "second"]:
        response = client.post("/api/v1/guestbook", json={"name": " Alice ", "message": text, "country": "NZ"})
        assert response.status_code == 201

    listed = client.get("/api/v1/guestbook").json()
    assert [m["message"] for m in listed] == ["second", "first"]
    assert listed[0]["name"] == "Alice"
    assert listed[0]["user_id"] == user["id"]


def test_validation_limits(signed_in):
    client, _ = signed_in
    too_long = client.post("/api/v1/guestbook", json={"name": "A", "message": "x" * 501})
    assert too_long.status_code == 422

    blank = client.post("/api/v1/guestbook", json={"name": "   ", "message": "hi"})
    assert blank.status_code == 422


def test_posting_requires_sign_in(client):
    assert client.post("/api/v1/guestbook", json={"name": "A", "message": "hi"}).status_code == 401


def test_only_author_can_delete(make_client):
    author = make_client()
    other = make_client()
    sign_in(author, "author@example.com", name="Author")
    sign_in(other, "other@example.com", name="Other")
    message_id = author.post("/api/v1/guestbook", json={"name": "Author", "message": "mine"}).json()["data"]["id"]

    denied = other.delete(f"/api/v1/guestbook/{message_id}")
    assert denied.status_code == 403
    assert denied.json()["message"] == "You can only delete your own messages"

    assert author.delete(f"/api/v1/guestbook/{message_id}").status_code == 200
    assert author.delete(f"/api/v1/guestbook/{message_id}").status_code == 404


def test_messages_survive_account_deletion_anonymously(db_session):
    user = create_user(db_session, "gone@example.com", name="Gone")
    message = crud.create_message(db_session, user, {"name": "Gone", "message": "still here"})

    delete_user(db_session, user)
    db_session.expire_all()

    kept = db_session.get(GuestbookMessage, message.id)
    assert kept.message == "still here"
    assert kept.user_id is None
    assert crud.can_delete(kept, None) is False


def test_posting_pushes_guestbook_refresh(signed_in):
    client, _ = signed_in
    with client.websocket_connect("/__realtime?key=/guestbook") as socket:
        assert socket.receive_json()["type"] == "subscribed"
        client.post("/api/v1/guestbook", json={"name": "Alice", "message": "hello"})
        assert socket.receive_json() == {"type": "refresh", "key": "/guestbook"}
