"""
logging_config.py
~~~~~~~~~~~~~~~~~

Logging setup shared by the command-line trainer and the API server.
"""

import os
import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are too chatty outside development
NOISY_LOGGERS = (
    'socketio', 'engineio', 'engineio.server', 'socketio.server', 'werkzeug'
)


def is_production() -> bool:
    return os.getenv('FLASK_ENV') == 'production'


def configure_logging(level: Optional[str] = None) -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging

    Args:
        level: Log level name; defaults to the LOG_LEVEL environment
            variable, then INFO
    """
    log_level_str = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logging.getLogger('feedforward').setLevel(log_level)

    if is_production():
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        # Keep our logs at INFO level for visibility in production
        logging.getLogger('feedforward').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)
