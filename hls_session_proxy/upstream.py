#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import asyncio
import logging

import aiohttp

from hls_session_proxy.errors import PlaylistUnavailable, SegmentUnavailable
from hls_session_proxy.hls_rewriter import MASTER_MANIFEST, VARIANT_MANIFEST

upstream_logger = logging.getLogger("upstream")

SEGMENT_CONTENT_TYPE = "video/mp2t"
SEGMENT_CHUNK_SIZE = 65536
QUALITY_PLAYLISTS = (VARIANT_MANIFEST, "playlist.m3u8")


def origin_directory(origin_url):
    return origin_url[:origin_url.rfind("/") + 1]


def sibling_url(origin_url, filename):
    return f"{origin_directory(origin_url)}{filename}"


def resolve_playlist_url(origin_url, filename, quality):
    if filename == MASTER_MANIFEST:
        return origin_url
    if filename in QUALITY_PLAYLISTS:
        return f"{origin_directory(origin_url)}{quality}/{VARIANT_MANIFEST}"
    return origin_url


def build_upstream_headers(config, range_header=None):
    # Origins commonly enforce hotlink protection, so present as a browser on the expected site
    headers = {
        "User-Agent": config["UPSTREAM_USER_AGENT"],
        "Referer": config["UPSTREAM_REFERER"],
        "Origin": config["UPSTREAM_ORIGIN"],
    }
    if range_header:
        headers["Range"] = range_header
    return headers


async def fetch_playlist(url, config):
    """
    Fetch a playlist body as text.

    Error details handed back to the client name the failure class only, never
    the upstream location.
    """
    timeout = aiohttp.ClientTimeout(total=config["UPSTREAM_TIMEOUT"])
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=build_upstream_headers(config)) as resp:
                if resp.status != 200:
                    upstream_logger.error("Failed to fetch playlist '%s': status %s", url, resp.status)
                    raise PlaylistUnavailable(
                        f"Failed to fetch playlist: {resp.status} {resp.reason or ''}".rstrip(),
                        upstream_status=resp.status,
                    )
                return await resp.text()
    except asyncio.TimeoutError:
        upstream_logger.error("Timed out fetching playlist '%s'", url)
        raise PlaylistUnavailable("Failed to fetch playlist: upstream timed out")
    except (aiohttp.ClientError, UnicodeDecodeError) as exc:
        upstream_logger.error("Failed to fetch playlist '%s': %s", url, exc)
        raise PlaylistUnavailable(f"Failed to fetch playlist: {type(exc).__name__}")


class UpstreamSegment:
    """
    An open upstream segment response. The owning aiohttp session stays open
    until the body has been streamed or the consumer goes away.
    """

    def __init__(self, session, resp):
        self.session = session
        self.resp = resp
        self.status = resp.status
        self.content_range = resp.headers.get("Content-Range")
        self.content_length = None
        # A decompressed body no longer matches the upstream length
        if resp.content_length is not None and not resp.headers.get("Content-Encoding"):
            self.content_length = resp.content_length

    async def iter_chunks(self):
        try:
            async for chunk in self.resp.content.iter_chunked(SEGMENT_CHUNK_SIZE):
                yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            upstream_logger.warning("Segment stream interrupted: %s", exc)
        finally:
            await self.close()

    async def close(self):
        self.resp.close()
        await self.session.close()


async def open_segment(url, config, range_header=None):
    timeout = aiohttp.ClientTimeout(
        total=None,
        sock_connect=config["UPSTREAM_TIMEOUT"],
        sock_read=config["UPSTREAM_TIMEOUT"],
    )
    session = aiohttp.ClientSession(timeout=timeout)
    try:
        resp = await session.get(url, headers=build_upstream_headers(config, range_header=range_header))
    except asyncio.TimeoutError:
        await session.close()
        upstream_logger.error("Timed out fetching segment '%s'", url)
        raise SegmentUnavailable("Failed to fetch segment: upstream timed out")
    except aiohttp.ClientError as exc:
        await session.close()
        upstream_logger.error("Failed to fetch segment '%s': %s", url, exc)
        raise SegmentUnavailable(f"Failed to fetch segment: {type(exc).__name__}")

    if resp.status not in (200, 206):
        resp.close()
        await session.close()
        upstream_logger.error("Failed to fetch segment '%s': status %s", url, resp.status)
        raise SegmentUnavailable(f"Failed to fetch segment: {resp.status}", upstream_status=resp.status)
    return UpstreamSegment(session, resp)
