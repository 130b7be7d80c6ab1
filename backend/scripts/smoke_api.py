"""
End-to-end smoke run against a live deployment.

    python backend/scripts/smoke_api.py --base-url http://localhost:8000

Creates a throwaway account, a post, a like and a comment, then cleans up.
"""
import argparse
import sys
import uuid
from typing import Dict, Optional

import requests


class SmokeTestRunner:
    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token: Optional[str] = None
        self.post_id: Optional[str] = None
        self.results: Dict[str, str] = {}

    def request(self, method: str, path: str, auth: bool = False, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return requests.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            timeout=self.timeout,
            **kwargs
        )

    def expect(self, response: requests.Response, status: int, description: str):
        assert response.status_code == status, (
            f"{description}: expected {status}, got {response.status_code} {response.text[:200]}"
        )
        print(f"  ok  {description}: {response.status_code}")

    def check_public(self):
        self.expect(self.request("GET", "/"), 200, "root")
        self.expect(self.request("GET", "/health"), 200, "health")
        self.expect(self.request("GET", "/api/blogs"), 200, "list posts")

    def check_auth(self):
        email = f"smoke-{uuid.uuid4().hex[:8]}@blogmail.com"
        r = self.request("POST", "/api/auth/signup", json={"name": "Smoke", "email": email, "password": "smoke-pass"})
        self.expect(r, 201, "signup")
        self.token = r.json()["token"]

        self.expect(
            self.request("POST", "/api/auth/login", json={"email": email, "password": "smoke-pass"}),
            200,
            "login"
        )
        self.expect(self.request("GET", "/api/auth/me", auth=True), 200, "me")

    def check_posts(self):
        r = self.request("POST", "/api/blogs", auth=True, data={
            "title": "Smoke test",
            "description": "Created by smoke_api.py",
            "content": "Safe to delete",
            "category": "Smoke",
        })
        self.expect(r, 201, "create post")
        self.post_id = r.json()["post"]["id"]

        self.expect(self.request("GET", f"/api/blogs/{self.post_id}"), 200, "get post")
        self.expect(
            self.request("PUT", f"/api/blogs/{self.post_id}", auth=True, data={"title": "Smoke test (edited)"}),
            200,
            "update post"
        )

    def check_engagement(self):
        r = self.request("POST", f"/api/blogs/{self.post_id}/like", auth=True)
        self.expect(r, 200, "like")
        assert r.json()["liked"] is True

        r = self.request("POST", f"/api/blogs/{self.post_id}/comment", auth=True, json={"text": "smoke"})
        self.expect(r, 200, "comment")
        comment_id = r.json()["comment"]["id"]
        self.expect(
            self.request("DELETE", f"/api/blogs/{self.post_id}/comment/{comment_id}", auth=True),
            200,
            "delete comment"
        )

    def check_errors(self):
        self.expect(self.request("GET", "/api/auth/me"), 401, "me without token")
        self.expect(self.request("GET", "/api/blogs/not-an-id"), 404, "malformed post id")
        self.expect(self.request("POST", "/api/blogs", data={"title": "x"}), 401, "create without token")

    def cleanup(self):
        if self.post_id:
            self.expect(self.request("DELETE", f"/api/blogs/{self.post_id}", auth=True), 200, "delete post")
            self.post_id = None

    def run(self) -> bool:
        suites = [
            ("public", self.check_public),
            ("auth", self.check_auth),
            ("posts", self.check_posts),
            ("engagement", self.check_engagement),
            ("errors", self.check_errors),
            ("cleanup", self.cleanup),
        ]
        for name, check in suites:
            print(f"\n[{name}]")
            try:
                check()
                self.results[name] = "passed"
            except (AssertionError, requests.RequestException) as e:
                self.results[name] = f"failed: {e}"
                print(f"  FAIL {e}")

        print("\n" + "=" * 60)
        for name, result in self.results.items():
            print(f"{name:<12} {result}")
        passed = sum(1 for result in self.results.values() if result == "passed")
        print("=" * 60)
        print(f"{passed}/{len(self.results)} suites passed")
        return passed == len(self.results)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Smoke test a running blog API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    args = parser.parse_args()
    sys.exit(0 if SmokeTestRunner(args.base_url).run() else 1)
