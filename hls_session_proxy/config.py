#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import os

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
DEFAULT_REFERER = "https://vidsrc.vip/"
DEFAULT_ORIGIN = "https://vidsrc.vip"


def _env_int(environ, name, default):
    value = environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValueError(f"{name} must be an integer, got '{value}'")


def _env_list(environ, name, default):
    value = environ.get(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(environ=None):
    """Read the proxy settings from the environment into a flat dict for ``app.config``."""
    if environ is None:
        environ = os.environ
    return {
        "ENABLE_DEBUGGING": environ.get("ENABLE_DEBUGGING", "false").lower() == "true",
        "PUBLIC_BASE_URL": environ.get("HLS_PROXY_BASE_URL") or None,
        "SESSION_TTL": _env_int(environ, "HLS_PROXY_SESSION_TTL", 24 * 60 * 60),
        "SESSION_BACKEND": environ.get("HLS_PROXY_SESSION_BACKEND", "memory").lower(),
        "REDIS_URL": environ.get("HLS_PROXY_REDIS_URL", "redis://localhost:6379/0"),
        "SESSION_SWEEP_INTERVAL": _env_int(environ, "HLS_PROXY_SESSION_SWEEP_INTERVAL", 0),
        "UPSTREAM_TIMEOUT": _env_int(environ, "HLS_PROXY_UPSTREAM_TIMEOUT", 30),
        "UPSTREAM_USER_AGENT": environ.get("HLS_PROXY_UPSTREAM_USER_AGENT", DEFAULT_USER_AGENT),
        "UPSTREAM_REFERER": environ.get("HLS_PROXY_UPSTREAM_REFERER", DEFAULT_REFERER),
        "UPSTREAM_ORIGIN": environ.get("HLS_PROXY_UPSTREAM_ORIGIN", DEFAULT_ORIGIN),
        "SEGMENT_MAX_AGE": _env_int(environ, "HLS_PROXY_SEGMENT_MAX_AGE", 3600),
        "CORS_ORIGINS": _env_list(environ, "HLS_PROXY_CORS_ORIGINS", ["*"]),
    }
