#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging

from quart import Response, jsonify
from werkzeug.exceptions import HTTPException

from hls_session_proxy.api import blueprint
from hls_session_proxy.errors import ProxyError, utc_timestamp

proxy_logger = logging.getLogger("proxy")


@blueprint.app_errorhandler(ProxyError)
async def handle_proxy_error(error):
    if getattr(error, "plain_text", False):
        return Response(error.error, status=error.status_code, content_type="text/plain")
    proxy_logger.info("%s -> %s: %s", type(error).__name__, error.status_code, error.details)
    return jsonify(error.to_dict()), error.status_code


@blueprint.app_errorhandler(Exception)
async def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return Response(error.description or error.name, status=error.code, content_type="text/plain")
    proxy_logger.exception("Unhandled error while serving request: %s", error)
    return jsonify({
        "error": "Internal Server Error",
        "message": "An unexpected error occurred",
        "timestamp": utc_timestamp(),
    }), 500
