#!/usr/bin/env python3
# -*- coding:utf-8 -*-
from quart import Response, current_app, request

from hls_session_proxy.api import blueprint

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS, HEAD",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, Range, Accept, Origin, X-Requested-With",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range, Accept-Ranges",
    "Access-Control-Max-Age": "86400",
}


def _allowed_origin(allowed_origins, request_origin):
    if not allowed_origins or "*" in allowed_origins:
        return "*"
    if request_origin in allowed_origins:
        return request_origin
    return allowed_origins[0]


@blueprint.before_app_request
async def answer_preflight():
    # Preflight requests never reach a handler, whatever the path
    if request.method == "OPTIONS":
        return Response("", status=200)
    return None


@blueprint.after_app_request
async def add_cors_headers(response):
    allowed_origins = current_app.config.get("CORS_ORIGINS", ["*"])
    allow_origin = _allowed_origin(allowed_origins, request.headers.get("Origin"))
    response.headers["Access-Control-Allow-Origin"] = allow_origin
    if allow_origin != "*":
        response.vary.add("Origin")
    for key, value in CORS_HEADERS.items():
        response.headers[key] = value
    return response
