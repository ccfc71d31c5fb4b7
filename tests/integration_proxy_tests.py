#!/usr/bin/env python3
"""
Drives a running proxy instance against real origins.

    HLS_PROXY_BASE_URL=http://localhost:9987 python tests/integration_proxy_tests.py

tests/test-urls.json lists master playlist URLs: {"urls": ["https://.../master.m3u8"]}
"""
import base64
import json
import os
import urllib.request
import uuid
from urllib.parse import urlparse


PROXY_BASE_URL = os.environ.get("HLS_PROXY_BASE_URL", "http://localhost:9987").rstrip("/")
TEST_URLS_FILE = os.environ.get("HLS_PROXY_TEST_URLS_FILE", os.path.join("tests", "test-urls.json"))


def _http(url, payload=None):
    data = None
    headers = {"User-Agent": "hls-proxy-test"}
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url, data=data, headers=headers)
    with urllib.request.urlopen(req, timeout=10) as resp:
        body = resp.read()
        return body.decode("utf-8", errors="replace"), dict(resp.headers)


def _extract_urls(text):
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def _decode_token(token):
    if token.endswith(".m3u8"):
        token = token[:-len(".m3u8")]
    return base64.urlsafe_b64decode(token + "==").decode("utf-8")


def _assert(condition, message):
    if not condition:
        raise AssertionError(message)


def _load_test_urls():
    if not os.path.exists(TEST_URLS_FILE):
        raise FileNotFoundError(
            f"Missing {TEST_URLS_FILE}. Provide a JSON file with a list of playlist URLs."
        )
    with open(TEST_URLS_FILE, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or "urls" not in payload:
        raise ValueError("test-urls.json must be a JSON object with a 'urls' array")
    urls = payload["urls"]
    if not isinstance(urls, list) or not urls:
        raise ValueError("'urls' must be a non-empty list")
    return urls


def _assert_rewrite(origin_url):
    session_id = uuid.uuid4().hex
    body, _headers = _http(f"{PROXY_BASE_URL}/store-session", {"sessionId": session_id, "originUrl": origin_url})
    _assert(json.loads(body).get("success") is True, f"Session was not stored: {body}")

    master_token = base64.urlsafe_b64encode(b"master.m3u8").decode("ascii").rstrip("=")
    body, headers = _http(f"{PROXY_BASE_URL}/file2/{session_id}/dW5rbm93bg/{master_token}.m3u8")
    _assert(headers.get("Access-Control-Allow-Origin"), "Missing CORS headers")
    urls = _extract_urls(body)
    _assert(len(urls) > 0, "Expected at least one URL in rewritten playlist")
    origin_host = urlparse(origin_url).netloc
    _assert(origin_host not in body, "Rewritten playlist leaks the origin host")
    for proxied in urls:
        parts = urlparse(proxied).path.split("/")
        _assert(parts[1] == "file2" and parts[2] == session_id, f"Unexpected proxy URL: {proxied}")
        _assert(_decode_token(parts[4]), f"Filename token does not decode: {proxied}")


def run():
    urls = _load_test_urls()
    for url in urls:
        print(f"[TEST] {url}")
        _assert_rewrite(url)
    print("All integration tests passed.")


if __name__ == "__main__":
    run()
