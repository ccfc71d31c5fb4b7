#!/usr/bin/env python3
# -*- coding:utf-8 -*-
"""
HLS manifest rewriting.

Every reference line of an origin playlist is replaced by a proxy URL carrying
(session id, quality, filename). Directives, comments and blank lines are
emitted exactly as received, so line count, order and line endings survive the
rewrite.

Master playlists (requested as ``master.m3u8``) are flattened: each variant
becomes ``<quality>/index.m3u8`` behind the proxy, where the quality is taken
from the variant's directory names. Media playlists keep only the last path
component of every segment reference.
"""
import logging
import re
from urllib.parse import urljoin

from hls_session_proxy.address_codec import build_proxy_url

proxy_logger = logging.getLogger("proxy")

MASTER_MANIFEST = "master.m3u8"
VARIANT_MANIFEST = "index.m3u8"
UNKNOWN_QUALITY = "unknown"

LINE_BLANK = "blank"
LINE_DIRECTIVE = "directive"
LINE_REFERENCE = "reference"

QUALITY_SEGMENT_RE = re.compile(r"^(\d+p?|low|med|high)$")

MANIFEST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
MANIFEST_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class RewriteContext:
    def __init__(self, proxy_origin, session_id, quality, base_url):
        self.proxy_origin = proxy_origin
        self.session_id = session_id
        self.quality = quality
        # Directory of the origin URL, ends with "/"
        self.base_url = base_url


def is_master_request(filename):
    return filename == MASTER_MANIFEST


def classify_line(line):
    stripped = line.strip()
    if not stripped:
        return LINE_BLANK
    if stripped.startswith("#"):
        return LINE_DIRECTIVE
    return LINE_REFERENCE


def is_absolute_url(reference):
    lowered = reference.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def _reference_path(reference):
    """Path part of a reference, without scheme, host or query string."""
    path = reference.split("?", 1)[0]
    if is_absolute_url(path):
        after_scheme = path.split("://", 1)[1]
        path = after_scheme[after_scheme.find("/"):] if "/" in after_scheme else ""
    return path


def is_variant_reference(reference):
    return is_absolute_url(reference) or _reference_path(reference).lower().endswith(".m3u8")


def is_segment_reference(reference):
    return is_absolute_url(reference) or _reference_path(reference).lower().endswith(".ts")


def detect_quality(reference):
    """
    Return the first directory name of the reference that looks like a
    rendition tag (``720``, ``1080p``, ``low``, ``med``, ``high``).
    """
    directories = _reference_path(reference).split("/")[:-1]
    for directory in directories:
        if QUALITY_SEGMENT_RE.match(directory):
            return directory
    return UNKNOWN_QUALITY


def segment_filename(reference):
    # The query string stays attached so signed segment URLs keep their token
    path, sep, query = reference.partition("?")
    return path.rsplit("/", 1)[-1] + sep + query


def rewrite_variant_reference(reference, context):
    if not is_variant_reference(reference):
        return None
    quality = detect_quality(reference)
    return build_proxy_url(context.proxy_origin, context.session_id, quality, VARIANT_MANIFEST, manifest=True)


def rewrite_segment_reference(reference, context):
    if not is_segment_reference(reference):
        return None
    proxy_logger.debug("Segment reference resolves to '%s'", urljoin(context.base_url, reference))
    return build_proxy_url(context.proxy_origin, context.session_id, context.quality, segment_filename(reference))


def _rewrite_lines(content, rewrite_reference, context):
    updated_lines = []
    for line in content.split("\n"):
        if line.endswith("\r"):
            body, ending = line[:-1], "\r"
        else:
            body, ending = line, ""
        if classify_line(body) != LINE_REFERENCE:
            updated_lines.append(line)
            continue
        new_reference = rewrite_reference(body.strip(), context)
        updated_lines.append(line if new_reference is None else new_reference + ending)
    return "\n".join(updated_lines)


def rewrite_master_playlist(content, context):
    return _rewrite_lines(content, rewrite_variant_reference, context)


def rewrite_media_playlist(content, context):
    return _rewrite_lines(content, rewrite_segment_reference, context)


def rewrite_manifest(content, filename, context):
    proxy_logger.debug(f"Original Playlist Content:\n{content}")
    if is_master_request(filename):
        modified_playlist = rewrite_master_playlist(content, context)
    else:
        modified_playlist = rewrite_media_playlist(content, context)
    proxy_logger.debug(f"Modified Playlist Content:\n{modified_playlist}")
    return modified_playlist
