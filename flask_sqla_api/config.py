# Configuration settings should be set in app.config
# The class variables of FlaskSqlaAPI hold the defaults, the environment is the last resort
import os
import logging
from flask import current_app
import flask_sqla_api
from typing import Any


def get_config(option: str) -> Any:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        result = current_app.config[option]
    except (KeyError, RuntimeError):
        # no app context or the app doesn't override the default
        result = getattr(flask_sqla_api.FlaskSqlaAPI, option, os.environ.get(option, None))
    return result


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return flask_sqla_api.log.getEffectiveLevel() < logging.INFO
