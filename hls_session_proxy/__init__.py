#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
import os
from logging.config import dictConfig
from importlib import import_module

from quart import Quart

from hls_session_proxy.config import load_config
from hls_session_proxy.session_store import create_session_store

dictConfig({
    'version':    1,
    'formatters': {
        'default': {
            'format': '%(asctime)s:%(levelname)s:%(name)s: %(message)s',
        }
    },
    'handlers':   {
        'wsgi': {
            'class':     'logging.StreamHandler',
            'stream':    'ext://sys.stderr',
            'formatter': 'default'
        }
    },
    'root':       {
        'level':    'INFO',
        'handlers': ['wsgi']
    }
})

enable_debugging = False
if os.environ.get('ENABLE_DEBUGGING', 'false').lower() == 'true':
    enable_debugging = True

# Importing these modules attaches their hooks and routes to the shared blueprint
API_MODULES = (
    'hls_session_proxy.api.cors',
    'hls_session_proxy.api.error_handlers',
    'hls_session_proxy.api.routes_session',
    'hls_session_proxy.api.routes_hls_proxy',
)


def create_app(config=None):
    # Create app
    app = Quart(__name__, instance_relative_config=True)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    app.extensions['session_store'] = create_session_store(app.config)

    # Register the route blueprint
    for module_name in API_MODULES:
        import_module(module_name)
    api = import_module('hls_session_proxy.api')
    app.register_blueprint(api.blueprint)

    for name in ('proxy', 'sessions', 'upstream'):
        logging.getLogger(name).setLevel(logging.INFO)
    app.logger.setLevel(logging.INFO)
    if enable_debugging or app.config.get('ENABLE_DEBUGGING'):
        app.logger.setLevel(logging.DEBUG)
        for name in ('proxy', 'sessions', 'upstream'):
            logging.getLogger(name).setLevel(logging.DEBUG)

    return app
