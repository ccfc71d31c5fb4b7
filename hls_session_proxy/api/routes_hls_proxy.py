#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging

from quart import Response, current_app, request

from hls_session_proxy.address_codec import MANIFEST_SUFFIX, parse_proxy_path
from hls_session_proxy.api import blueprint
from hls_session_proxy.api.routes_session import ANY_METHOD, get_session_store
from hls_session_proxy.errors import (
    PlaylistUnavailable,
    SegmentUnavailable,
    SessionNotFound,
    UnsupportedFormat,
    ValidationError,
)
from hls_session_proxy.hls_rewriter import (
    MANIFEST_CONTENT_TYPE,
    MANIFEST_HEADERS,
    RewriteContext,
    rewrite_manifest,
)
from hls_session_proxy.upstream import (
    SEGMENT_CONTENT_TYPE,
    fetch_playlist,
    open_segment,
    origin_directory,
    resolve_playlist_url,
    sibling_url,
)

proxy_logger = logging.getLogger("proxy")


def is_segment_request(filename):
    """
    Anything that is a ``.ts`` file, or carries none of the playlist markers,
    is served as a media segment.
    """
    name = filename.split("?", 1)[0]
    if name.endswith(".ts"):
        return True
    return MANIFEST_SUFFIX not in name and "master" not in name and "index" not in name


def _proxy_origin():
    public_base_url = current_app.config.get("PUBLIC_BASE_URL")
    if public_base_url:
        return public_base_url.rstrip("/")
    return f"{request.scheme}://{request.host}"


async def proxy_segment(session, triple):
    segment_url = sibling_url(session.origin_url, triple.filename)
    try:
        segment = await open_segment(segment_url, current_app.config, range_header=request.headers.get("Range"))
    except SegmentUnavailable as exc:
        exc.filename = triple.filename
        raise

    proxy_logger.info("[SEGMENT] Streaming '%s' for session %s", triple.filename, triple.session_id[:20])
    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": f"public, max-age={current_app.config['SEGMENT_MAX_AGE']}",
    }
    if segment.content_range:
        headers["Content-Range"] = segment.content_range
    if segment.content_length is not None:
        headers["Content-Length"] = str(segment.content_length)

    if request.method == "HEAD":
        await segment.close()
        return Response(b"", status=segment.status, content_type=SEGMENT_CONTENT_TYPE, headers=headers)

    response = Response(segment.iter_chunks(), status=segment.status, content_type=SEGMENT_CONTENT_TYPE,
                        headers=headers)
    response.timeout = None  # Disable timeout for streaming response
    return response


async def proxy_playlist(session, triple):
    playlist_url = resolve_playlist_url(session.origin_url, triple.filename, triple.quality)
    context = RewriteContext(
        _proxy_origin(),
        triple.session_id,
        triple.quality,
        origin_directory(session.origin_url),
    )
    try:
        playlist_content = await fetch_playlist(playlist_url, current_app.config)
        updated_playlist = rewrite_manifest(playlist_content, triple.filename, context)
    except PlaylistUnavailable as exc:
        exc.filename = triple.filename
        exc.quality = triple.quality
        raise
    except Exception as exc:
        proxy_logger.exception("Failed to rewrite playlist '%s' for session %s", triple.filename,
                               triple.session_id[:20])
        raise PlaylistUnavailable(f"Failed to rewrite playlist: {type(exc).__name__}",
                                  filename=triple.filename, quality=triple.quality) from exc

    proxy_logger.info("[PLAYLIST] Serving rewritten '%s' (%s) for session %s", triple.filename, triple.quality,
                      triple.session_id[:20])
    return Response(updated_playlist, status=200, content_type=MANIFEST_CONTENT_TYPE, headers=MANIFEST_HEADERS)


@blueprint.route("/file2/", defaults={"subpath": ""}, methods=ANY_METHOD)
@blueprint.route("/file2/<path:subpath>", methods=ANY_METHOD)
async def proxy_file2(subpath):
    # Tokens are decoded before the session store is consulted
    triple = parse_proxy_path(request.path)

    session = await get_session_store().get(triple.session_id)
    if session is None:
        raise SessionNotFound(triple.session_id)

    if is_segment_request(triple.filename):
        return await proxy_segment(session, triple)
    return await proxy_playlist(session, triple)


@blueprint.route("/stream/", defaults={"subpath": ""}, methods=ANY_METHOD)
@blueprint.route("/stream/<path:subpath>", methods=ANY_METHOD)
async def proxy_legacy_stream(subpath):
    path_parts = [part for part in request.path.split("/") if part]
    if len(path_parts) < 5:
        raise ValidationError("Invalid legacy URL format", plain_text=True)
    raise UnsupportedFormat()
