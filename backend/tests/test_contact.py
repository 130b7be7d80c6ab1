"""
Contact form submissions and the admin listing.
"""
from conftest import bearer


class TestContact:

    def test_submission_is_stored(self, client):
        r = client.post("/api/contact", json={
            "name": "Visitor",
            "email": "visitor@blogmail.com",
            "message": "Love the blog"
        })
        assert r.status_code == 201
        body = r.json()
        assert body["id"]
        assert body["message"] == "Love the blog"

    def test_invalid_email_is_rejected(self, client):
        r = client.post("/api/contact", json={"name": "V", "email": "nope", "message": "hi"})
        assert r.status_code == 400

    def test_listing_requires_admin(self, client, api):
        assert client.get("/api/contact").status_code == 401
        headers = api.headers_for("Alice", "alice@blogmail.com")
        assert client.get("/api/contact", headers=headers).status_code == 403

    def test_admin_sees_newest_first(self, client, api):
        for text in ("first", "second"):
            client.post("/api/contact", json={"name": "V", "email": "v@blogmail.com", "message": text})

        token = api.signup("Admin", "Admin@blogmail.com")["token"]
        r = client.get("/api/contact", headers=bearer(token))
        assert r.status_code == 200
        assert [m["message"] for m in r.json()] == ["second", "first"]
