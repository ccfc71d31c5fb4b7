#!/usr/bin/env python3
# -*- coding:utf-8 -*-
from datetime import datetime, timezone


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProxyError(Exception):
    """
    Base class for failures that map onto a structured HTTP error response.

    Subclasses set ``status_code`` and build their JSON body in ``to_dict``.
    Nothing placed in the body may contain the upstream origin URL.
    """
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, details=None):
        super().__init__(details or self.error)
        self.details = details

    def to_dict(self):
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ProxyError):
    status_code = 400
    error = "Invalid request"

    def __init__(self, error, plain_text=False):
        super().__init__(error)
        self.error = error
        # Gross path-shape violations answer with a bare text body
        self.plain_text = plain_text

    def to_dict(self):
        return {"error": self.error}


class DecodeError(ProxyError):
    status_code = 400
    error = "Failed to decode URL"

    def to_dict(self):
        return {
            "error": self.error,
            "details": self.details,
            "timestamp": utc_timestamp(),
        }


class SessionNotFound(ProxyError):
    status_code = 404
    error = "Session not found or expired"

    def __init__(self, session_id):
        super().__init__(f"Unknown session {session_id[:20]}")
        self.session_id = session_id

    def to_dict(self):
        return {
            "error": self.error,
            "sessionPath": f"{self.session_id[:20]}...",
            "note": "Session may have expired or was never stored",
        }


class SegmentUnavailable(ProxyError):
    status_code = 404
    error = "Segment not available"

    def __init__(self, details, filename=None, upstream_status=None):
        super().__init__(details)
        self.filename = filename
        self.upstream_status = upstream_status

    def to_dict(self):
        return {
            "error": self.error,
            "filename": self.filename,
            "originalError": self.details,
        }


class PlaylistUnavailable(ProxyError):
    status_code = 500
    error = "Playlist not available"

    def __init__(self, details, filename=None, quality=None, upstream_status=None):
        super().__init__(details)
        self.filename = filename
        self.quality = quality
        self.upstream_status = upstream_status

    def to_dict(self):
        return {
            "error": self.error,
            "details": self.details,
            "filename": self.filename,
            "quality": self.quality,
        }


class UnsupportedFormat(ProxyError):
    status_code = 410
    error = "Legacy format deprecated"

    def to_dict(self):
        return {
            "error": self.error,
            "message": "Please use the current format: /file2/[session]/[quality]/[filename].m3u8",
            "format": "file2/[sessionPath]/[qualityBase64]/[filenameBase64].m3u8",
            "example": "/file2/abc123/cXVhbGl0eQ/cGxheWxpc3QubTN1OA.m3u8",
        }
