#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
Proxy addressing scheme.

A proxied artifact is identified by the triple (session id, quality, filename).
Quality and filename travel as unpadded base64 tokens so the proxy path never
exposes the origin layout:

    /file2/<session_id>/<encode_token(quality)>/<encode_token(filename)>[.m3u8]

The ``.m3u8`` suffix marks playlists so players pick the right demuxer; it is
stripped again before the filename token is decoded.
"""
import base64
import binascii
import re

from hls_session_proxy.errors import DecodeError, ValidationError

PROXY_PATH_PREFIX = "/file2"
MANIFEST_SUFFIX = ".m3u8"

# Decoding always re-pads with the maximum two characters; base64 ignores the excess.
_PAD = "=="
# Standard and URL-safe alphabets are both accepted, optionally with kept padding.
_TOKEN_RE = re.compile(r"^[A-Za-z0-9+/_-]*={0,2}$")
_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


class AddressTriple:
    __slots__ = ("session_id", "quality", "filename")

    def __init__(self, session_id, quality, filename):
        self.session_id = session_id
        self.quality = quality
        self.filename = filename

    def __eq__(self, other):
        if not isinstance(other, AddressTriple):
            return NotImplemented
        return (self.session_id, self.quality, self.filename) == (
            other.session_id, other.quality, other.filename)

    def __repr__(self):
        return f"AddressTriple({self.session_id[:20]!r}, {self.quality!r}, {self.filename!r})"


def encode_token(value):
    encoded = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_token(token):
    if not _TOKEN_RE.match(token):
        raise DecodeError(f"Token contains characters outside the base64 alphabet: {token[:40]!r}")
    padded = (token + _PAD).translate(_URLSAFE_TO_STANDARD)
    try:
        return base64.b64decode(padded).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise DecodeError(f"Invalid token {token[:40]!r}: {exc}") from exc


def build_proxy_url(proxy_origin, session_id, quality, filename, manifest=False):
    url = f"{proxy_origin.rstrip('/')}{PROXY_PATH_PREFIX}/{session_id}/{encode_token(quality)}/{encode_token(filename)}"
    if manifest:
        url += MANIFEST_SUFFIX
    return url


def parse_proxy_path(path):
    """
    Split a ``/file2/...`` request path into its decoded AddressTriple.

    Raises ValidationError when the path has too few segments and DecodeError
    when either token is not valid base64 text.
    """
    parts = path.split("/")
    if len(parts) < 5:
        raise ValidationError("Invalid URL format", plain_text=True)

    session_id, quality_token, filename_token = parts[2], parts[3], parts[4]
    if filename_token.endswith(MANIFEST_SUFFIX):
        filename_token = filename_token[:-len(MANIFEST_SUFFIX)]

    quality = decode_token(quality_token)
    filename = decode_token(filename_token)
    if not filename:
        raise DecodeError("Filename token decodes to an empty name")
    return AddressTriple(session_id, quality, filename)
