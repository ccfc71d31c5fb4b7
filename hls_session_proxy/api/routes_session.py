#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import asyncio
import logging

from quart import Response, current_app, jsonify, request

from hls_session_proxy.api import blueprint
from hls_session_proxy.errors import ValidationError, utc_timestamp
from hls_session_proxy.session_store import periodic_session_sweep, store_session

sessions_logger = logging.getLogger("sessions")

ANY_METHOD = ["GET", "POST", "PUT", "DELETE", "PATCH"]


def get_session_store():
    return current_app.extensions["session_store"]


@blueprint.record_once
def _register_startup(state):
    app = state.app

    @app.before_serving
    async def _start_session_sweep():
        interval = app.config.get("SESSION_SWEEP_INTERVAL", 0)
        if interval > 0:
            sessions_logger.info("Sweeping expired sessions every %s seconds", interval)
            app.extensions["session_sweep_task"] = asyncio.create_task(
                periodic_session_sweep(app.extensions["session_store"], interval))

    @app.after_serving
    async def _close_session_store():
        task = app.extensions.pop("session_sweep_task", None)
        if task:
            task.cancel()
        await app.extensions["session_store"].close()


def _parse_session_payload(payload):
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    session_id = payload.get("sessionId")
    # "originalUrl" is what older clients send
    origin_url = payload.get("originUrl") or payload.get("originalUrl")
    if not session_id or not origin_url or not isinstance(session_id, str) or not isinstance(origin_url, str):
        raise ValidationError("sessionId and originUrl are required")
    if "/" in session_id:
        raise ValidationError("sessionId must not contain '/'")

    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")
    return session_id, origin_url, metadata


@blueprint.route("/store-session", methods=ANY_METHOD)
@blueprint.route("/store-session/", methods=ANY_METHOD)
@blueprint.route("/store-session/<path:subpath>", methods=ANY_METHOD)
async def create_session(subpath=None):
    if request.method != "POST":
        return Response("Method not allowed", status=405, content_type="text/plain")

    payload = await request.get_json(force=True, silent=True)
    session_id, origin_url, metadata = _parse_session_payload(payload)

    await store_session(
        get_session_store(),
        session_id,
        origin_url,
        metadata=metadata,
        ttl=current_app.config["SESSION_TTL"],
    )
    return jsonify({"success": True, "sessionId": session_id})


@blueprint.route("/health", methods=["GET"])
async def health():
    return jsonify({
        "status": "ok",
        "message": "HLS Session Proxy is running",
        "timestamp": utc_timestamp(),
        "endpoints": {
            "store-session": "POST /store-session - Store session data",
            "file2": "GET /file2/[session]/[quality]/[filename] - Proxy HLS streams",
            "legacy": "GET /stream/[provider]/[quality]/[type]/[data] - Legacy format (gone)",
            "health": "GET /health - Health check",
        },
    })


@blueprint.route("/", defaults={"path": ""}, methods=ANY_METHOD)
@blueprint.route("/<path:path>", methods=ANY_METHOD)
async def ready(path):
    return Response("HLS Session Proxy - Ready", status=200, content_type="text/plain")
