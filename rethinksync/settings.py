"""RethinkSync settings

This module contains the settings for RethinkSync.
It reads environment variables from a .env file and sets default values for each variable.
The variables are used to configure the RethinkDB source, the search backend,
backfill batching, reconnection backoff and logging.
"""

import logging
import logging.config
import os
import typing as t

from environs import Env

logger = logging.getLogger(__name__)

env = Env()
env.read_env(path=os.path.join(os.getcwd(), ".env"))

# RethinkSync:
# number of documents sent per bulk request during backfill
BACKFILL_BATCH_SIZE = env.int("BACKFILL_BATCH_SIZE", default=1000)
# first reconnect delay (in secs), doubled after every failed attempt
RECONNECT_INITIAL_BACKOFF = env.float(
    "RECONNECT_INITIAL_BACKOFF", default=0.25
)
# reconnect delay ceiling (in secs)
RECONNECT_MAX_BACKOFF = env.float("RECONNECT_MAX_BACKOFF", default=30.0)
# stdout log interval (in secs)
LOG_INTERVAL = env.float("LOG_INTERVAL", default=0.5)
# log a line every N live changes applied
SYNC_LOG_EVERY = env.int("SYNC_LOG_EVERY", default=10)
# seconds to wait for worker threads on shutdown
SHUTDOWN_TIMEOUT = env.float("SHUTDOWN_TIMEOUT", default=10.0)
FORMAT_WITH_COMMAS = env.bool("FORMAT_WITH_COMMAS", default=True)
# the river document holding the shared configuration
RIVER_INDEX = env.str("RIVER_INDEX", default="rethinksync")
RIVER_NAME = env.str("RIVER_NAME", default="river")
# path to the application config
SCHEMA = env.str("SCHEMA", default=None)
S3_SCHEMA_URL = env.str("S3_SCHEMA_URL", default=None)
SCHEMA_URL = env.str("SCHEMA_URL", default=None)

# RethinkDB:
RETHINKDB_HOST = env.str("RETHINKDB_HOST", default="localhost")
RETHINKDB_PORT = env.int("RETHINKDB_PORT", default=28015)
RETHINKDB_AUTH_KEY = env.str("RETHINKDB_AUTH_KEY", default="")
# connection timeout (in secs)
RETHINKDB_TIMEOUT = env.int("RETHINKDB_TIMEOUT", default=20)

# Elasticsearch/OpenSearch:
ELASTICSEARCH_API_KEY = env.str("ELASTICSEARCH_API_KEY", default=None)
ELASTICSEARCH_API_KEY_ID = env.str("ELASTICSEARCH_API_KEY_ID", default=None)
ELASTICSEARCH_AWS_HOSTED = env.bool("ELASTICSEARCH_AWS_HOSTED", default=False)
ELASTICSEARCH_AWS_REGION = env.str("ELASTICSEARCH_AWS_REGION", default=None)
ELASTICSEARCH_BASIC_AUTH = env.str("ELASTICSEARCH_BASIC_AUTH", default=None)
ELASTICSEARCH_BEARER_AUTH = env.str("ELASTICSEARCH_BEARER_AUTH", default=None)
# provide a path to CA certs on disk
ELASTICSEARCH_CA_CERTS = env.str("ELASTICSEARCH_CA_CERTS", default=None)
# PEM formatted SSL client certificate
ELASTICSEARCH_CLIENT_CERT = env.str("ELASTICSEARCH_CLIENT_CERT", default=None)
# PEM formatted SSL client key
ELASTICSEARCH_CLIENT_KEY = env.str("ELASTICSEARCH_CLIENT_KEY", default=None)
ELASTICSEARCH_CLOUD_ID = env.str("ELASTICSEARCH_CLOUD_ID", default=None)
ELASTICSEARCH_HOST = env.str("ELASTICSEARCH_HOST", default="localhost")
ELASTICSEARCH_HTTP_AUTH = env.list("ELASTICSEARCH_HTTP_AUTH", default=None)
if ELASTICSEARCH_HTTP_AUTH:
    ELASTICSEARCH_HTTP_AUTH = tuple(ELASTICSEARCH_HTTP_AUTH)
ELASTICSEARCH_HTTP_COMPRESS = env.bool(
    "ELASTICSEARCH_HTTP_COMPRESS", default=True
)
# the maximum size of the request in bytes (default: 100MB)
ELASTICSEARCH_MAX_CHUNK_BYTES = env.int(
    "ELASTICSEARCH_MAX_CHUNK_BYTES",
    default=104857600,
)
ELASTICSEARCH_OPAQUE_ID = env.str("ELASTICSEARCH_OPAQUE_ID", default=None)
ELASTICSEARCH_PASSWORD = env.str("ELASTICSEARCH_PASSWORD", default=None)
ELASTICSEARCH_PORT = env.int("ELASTICSEARCH_PORT", default=9200)
ELASTICSEARCH_SCHEME = env.str("ELASTICSEARCH_SCHEME", default="http")
ELASTICSEARCH_SSL_ASSERT_FINGERPRINT = env.str(
    "ELASTICSEARCH_SSL_ASSERT_FINGERPRINT", default=None
)
ELASTICSEARCH_SSL_ASSERT_HOSTNAME = env.str(
    "ELASTICSEARCH_SSL_ASSERT_HOSTNAME", default=None
)
ELASTICSEARCH_SSL_CONTEXT = env.str("ELASTICSEARCH_SSL_CONTEXT", default=None)
# don't show warnings about ssl certs verification
ELASTICSEARCH_SSL_SHOW_WARN = env.bool(
    "ELASTICSEARCH_SSL_SHOW_WARN",
    default=False,
)
ELASTICSEARCH_SSL_VERSION = env.int("ELASTICSEARCH_SSL_VERSION", default=None)
# increase this if you are getting read request timeouts
ELASTICSEARCH_TIMEOUT = env.float("ELASTICSEARCH_TIMEOUT", default=10)
ELASTICSEARCH_USER = env.str("ELASTICSEARCH_USER", default=None)
ELASTICSEARCH_VERIFY_CERTS = env.bool(
    "ELASTICSEARCH_VERIFY_CERTS", default=True
)
# full Elasticsearch/OpenSearch url including user, password, host and port
ELASTICSEARCH_URL = env.str("ELASTICSEARCH_URL", default=None)

ELASTICSEARCH = env.bool("ELASTICSEARCH", default=None)
OPENSEARCH = env.bool("OPENSEARCH", default=None)

if ELASTICSEARCH is None and OPENSEARCH is None:
    ELASTICSEARCH, OPENSEARCH = True, False
elif ELASTICSEARCH is None:
    ELASTICSEARCH = not OPENSEARCH
elif OPENSEARCH is None:
    OPENSEARCH = not ELASTICSEARCH

if ELASTICSEARCH and OPENSEARCH:
    raise ValueError("Cannot enable both ELASTICSEARCH and OPENSEARCH")
if not ELASTICSEARCH and not OPENSEARCH:
    raise ValueError("Enable one search backend: ELASTICSEARCH or OPENSEARCH")

ELASTICSEARCH = bool(ELASTICSEARCH)
OPENSEARCH = bool(OPENSEARCH)

OPENSEARCH_AWS_HOSTED = env.bool("OPENSEARCH_AWS_HOSTED", default=False)
OPENSEARCH_AWS_SERVERLESS = env.bool(
    "OPENSEARCH_AWS_SERVERLESS", default=False
)


# Logging:
def _get_logging_config(silent_loggers: t.Optional[t.List[str]] = None):
    """Return the logging configuration based on environment variables."""
    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {
                "format": "%(asctime)s.%(msecs)03d:%(levelname)s:%(name)s: %(message)s",  # noqa E501
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": env.str(
                    "CONSOLE_LOGGING_HANDLER_MIN_LEVEL",
                    default="WARNING",
                ),
                "formatter": "simple",
            },
        },
        "loggers": {
            "": {
                "handlers": env.list("LOG_HANDLERS", default=["console"]),
                "level": env.str("GENERAL_LOGGING_LEVEL", default="DEBUG"),
                "propagate": True,
            },
        },
    }
    if silent_loggers:
        for silent_logger in silent_loggers:
            config["loggers"][silent_logger] = {
                "level": "INFO",
            }

    for logger_config in env.list("CUSTOM_LOGGING", default=[]):
        logger, level = logger_config.split("=")
        config["loggers"][logger] = {
            "level": level,
        }
    return config


LOGGING = _get_logging_config(
    silent_loggers=[
        "urllib3.connectionpool",
        "urllib3.util.retry",
        "elasticsearch",
        "elastic_transport.transport",
        "opensearch",
        "rethinkdb",
    ]
)

logging.config.dictConfig(LOGGING)
