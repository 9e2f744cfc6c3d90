"""Profile edits, onboarding and avatar storage."""

import io

from conftest import sign_in
from redcloud.core.config import settings
from redcloud.models.user import User

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def test_naming_yourself_completes_onboarding(client):
    sign_in(client, "fresh@example.com", name=None)
    assert client.get("/api/v1/auth/session").json()["needs_onboarding"] is True

    updated = client.patch("/api/v1/profile", json={"name": "  Fresh  "})
    assert updated.status_code == 200
    assert updated.json()["data"]["name"] == "Fresh"
    assert client.get("/api/v1/auth/session").json()["needs_onboarding"] is False


def test_name_is_required(signed_in):
    client, _ = signed_in
    response = client.patch("/api/v1/profile", json={"name": "   "})
    assert response.status_code == 422
    assert response.json()["message"] == "Name is required"


def test_avatar_upload_replaces_previous_file(signed_in):
    client, user = signed_in

    first = client.post("/api/v1/profile/avatar", files={"file": ("a.png", io.BytesIO(PNG_BYTES), "image/png")})
    assert first.status_code == 200
    first_url = first.json()["data"]["image"]
    assert first_url.startswith(f"/avatars/{user['id']}/")
    assert first_url.endswith(".png")

    served = client.get(first_url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES

    second = client.post("/api/v1/profile/avatar", files={"file": ("b.gif", io.BytesIO(b"GIF89a"), "image/gif")})
    second_url = second.json()["data"]["image"]
    assert second_url != first_url
    assert client.get(first_url).status_code == 404
    assert len(list((settings.avatars_dir / user["id"]).iterdir())) == 1


def test_avatar_rejects_other_types_and_oversize(signed_in, monkeypatch):
    client, _ = signed_in
    text = client.post("/api/v1/profile/avatar", files={"file": ("a.txt", io.BytesIO(b"hi"), "text/plain")})
    assert text.status_code == 422
    assert text.json()["message"] == "Avatar must be a PNG, JPEG, WebP or GIF image"

    monkeypatch.setattr(settings, "AVATAR_MAX_BYTES", 10)
    big = client.post("/api/v1/profile/avatar", files={"file": ("a.png", io.BytesIO(PNG_BYTES), "image/png")})
    assert big.status_code == 422
    assert big.json()["message"] == "Avatar file is too large"


def test_avatar_paths_cannot_escape_the_bucket(client):
    assert client.get("/avatars/../../etc/passwd").status_code == 404
    assert client.get("/avatars/missing/file.png").status_code == 404


def test_cannot_claim_or_delete_another_users_avatar(make_client, db_session):
    bob = make_client()
    eve = make_client()
    sign_in(bob, "bob@example.com", name="Bob")
    eve_user = sign_in(eve, "eve@example.com", name="Eve")
    bob_url = bob.post(
        "/api/v1/profile/avatar", files={"file": ("b.png", io.BytesIO(PNG_BYTES), "image/png")}
    ).json()["data"]["image"]

    claimed = eve.patch("/api/v1/profile", json={"name": "Eve", "image": bob_url})
    assert claimed.status_code == 422
    assert claimed.json()["message"] == "You can only use your own uploaded avatar"

    # a row pointing at a foreign key must not let an upload remove that file
    record = db_session.get(User, eve_user["id"])
    record.image = bob_url
    db_session.commit()
    uploaded = eve.post("/api/v1/profile/avatar", files={"file": ("e.png", io.BytesIO(PNG_BYTES), "image/png")})
    assert uploaded.status_code == 200

    assert bob.get(bob_url).status_code == 200


def test_profile_image_must_be_a_url(signed_in):
    client, _ = signed_in
    bad = client.patch("/api/v1/profile", json={"name": "Alice", "image": "javascript:alert(1)"})
    assert bad.status_code == 422
    assert "Image must be an http(s) URL or an uploaded avatar" in bad.json()["message"]

    ok = client.patch("/api/v1/profile", json={"name": "Alice", "image": "https://example.com/me.png"})
    assert ok.json()["data"]["image"] == "https://example.com/me.png"
