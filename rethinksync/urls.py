"""RethinkSync urls."""

import logging
import typing as t
from urllib.parse import quote_plus

from .settings import (
    ELASTICSEARCH_HOST,
    ELASTICSEARCH_PASSWORD,
    ELASTICSEARCH_PORT,
    ELASTICSEARCH_SCHEME,
    ELASTICSEARCH_URL,
    ELASTICSEARCH_USER,
    RETHINKDB_AUTH_KEY,
    RETHINKDB_HOST,
    RETHINKDB_PORT,
)

logger = logging.getLogger(__name__)


def get_search_url(
    scheme: t.Optional[str] = None,
    user: t.Optional[str] = None,
    host: t.Optional[str] = None,
    password: t.Optional[str] = None,
    port: t.Optional[int] = None,
) -> str:
    """
    Return the URL to connect to Elasticsearch/OpenSearch.

    Args:
        scheme (Optional[str]): The scheme to use for the connection. Defaults to None.
        user (Optional[str]): The username to use for the connection. Defaults to None.
        host (Optional[str]): The host to connect to. Defaults to None.
        password (Optional[str]): The password to use for the connection. Defaults to None.
        port (Optional[int]): The port to use for the connection. Defaults to None.

    Returns:
        str: The URL to connect to Elasticsearch/OpenSearch.
    """
    scheme = scheme or ELASTICSEARCH_SCHEME
    host = host or ELASTICSEARCH_HOST
    port = port or ELASTICSEARCH_PORT
    user = user or ELASTICSEARCH_USER
    password = password or ELASTICSEARCH_PASSWORD
    # override the default URL if ELASTICSEARCH_URL is set
    if ELASTICSEARCH_URL:
        return ELASTICSEARCH_URL.strip()

    auth: str = ""
    if user and password:
        auth = f"{user}:{quote_plus(password)}@"
    else:
        logger.debug("Connecting to Search without password.")

    return f"{scheme}://{auth}{host}:{port}"


def get_rethinkdb_url(
    host: t.Optional[str] = None,
    port: t.Optional[int] = None,
    auth_key: t.Optional[str] = None,
) -> str:
    """
    Return a URL describing the RethinkDB server.

    The driver connects with host and port, so this is only used for display.
    """
    host = host or RETHINKDB_HOST
    port = port or RETHINKDB_PORT
    auth_key = auth_key or RETHINKDB_AUTH_KEY

    auth: str = ""
    if auth_key:
        auth = f":{quote_plus(auth_key)}@"
    else:
        logger.debug("Connecting to RethinkDB without auth key.")

    return f"rethinkdb://{auth}{host}:{port}"
