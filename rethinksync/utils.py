"""RethinkSync utils."""

import json
import logging
import os
import sys
import tempfile
import threading
import typing as t
from datetime import timedelta
from string import Template
from time import time
from urllib.parse import ParseResult, urlparse

import boto3
import click
import requests

from . import settings
from .constants import RETHINKDB
from .urls import get_rethinkdb_url, get_search_url

logger = logging.getLogger(__name__)

HIGHLIGHT_BEGIN = "\033[4m"
HIGHLIGHT_END = "\033[0m:"


class Timer:
    def __init__(self, message: t.Optional[str] = None):
        self.message: str = message or ""

    def __enter__(self):
        self.start: float = time()
        return self

    def __exit__(self, *args):
        elapsed: float = time() - self.start
        sys.stdout.write(
            f"{self.message} {(timedelta(seconds=elapsed))} "
            f"({elapsed:2.2f} sec)\n"
        )


def threaded(func: t.Callable):
    """Decorator for threaded code execution."""

    def wrapper(*args, **kwargs) -> threading.Thread:
        thread: threading.Thread = threading.Thread(
            target=func, args=args, kwargs=kwargs, daemon=True
        )
        thread.start()
        return thread

    return wrapper


def format_number(n: int) -> str:
    """
    Format a number with commas if the setting is enabled."""
    return f"{n:,}" if settings.FORMAT_WITH_COMMAS else f"{n}"


def get_redacted_url(url: str) -> str:
    """
    Returns a redacted version of the input URL, with the password replaced by asterisks.
    """
    parsed_url: ParseResult = urlparse(url)
    if parsed_url.password:
        username = parsed_url.username or ""
        hostname = parsed_url.hostname or ""
        port = f":{parsed_url.port}" if parsed_url.port else ""
        redacted_password = "*" * len(parsed_url.password)
        netloc: str = f"{username}:{redacted_password}@{hostname}{port}"
        parsed_url = parsed_url._replace(netloc=netloc)
    return parsed_url.geturl()


def show_settings(
    doc: t.Optional[dict] = None,
    config: t.Optional[str] = None,
    schema_url: t.Optional[str] = None,
    s3_schema_url: t.Optional[str] = None,
) -> None:
    """Show settings."""
    logger.info(f"{HIGHLIGHT_BEGIN}Settings{HIGHLIGHT_END}")
    logger.info(f'{"Schema":<10s}: {config or schema_url or s3_schema_url}')
    logger.info(f'{"River":<10s}: {settings.RIVER_INDEX}/{settings.RIVER_NAME}')
    logger.info("-" * 65)
    logger.info(f"{HIGHLIGHT_BEGIN}RethinkDB{HIGHLIGHT_END}")
    section: dict = (doc or {}).get(RETHINKDB, {})
    url: str = get_rethinkdb_url(
        host=section.get("host"),
        port=section.get("port"),
        auth_key=section.get("auth_key"),
    )
    logger.info(f"URL: {get_redacted_url(url)}")

    url = get_search_url()
    logger.info(
        f"{HIGHLIGHT_BEGIN}{'Elasticsearch' if settings.ELASTICSEARCH else 'OpenSearch'}{HIGHLIGHT_END}"
    )
    logger.info(f"URL: {get_redacted_url(url)}")
    logger.info("-" * 65)


def validate_config(
    config: t.Optional[str] = None,
    schema_url: t.Optional[str] = None,
    s3_schema_url: t.Optional[str] = None,
) -> None:
    """Ensure there is a valid config location."""

    if config:
        if not os.path.exists(config):
            raise FileNotFoundError(f'Schema config "{config}" not found')

    if schema_url:
        parsed = urlparse(schema_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f'Invalid URL: "{schema_url}"')

    if s3_schema_url:
        if not s3_schema_url.startswith("s3://"):
            raise ValueError(f'Invalid S3 URL: "{s3_schema_url}"')

    if not config and not schema_url and not s3_schema_url:
        raise ValueError(
            "You must provide either a local config path, a valid URL or an S3 URL"
        )


def river_document(data: dict) -> dict:
    """
    Normalise a loaded config into the river document.

    Both {'rethinkdb': {...}} and a bare {'host': ..., 'databases': ...}
    are accepted.
    """
    if not isinstance(data, dict):
        raise ValueError("Config must be a JSON object")
    section: dict = data.get(RETHINKDB, data)
    if not isinstance(section, dict):
        raise ValueError(f"Config section {RETHINKDB} must be a JSON object")
    section = dict(section)
    for key, value in section.items():
        try:
            section[key] = Template(value).safe_substitute(os.environ)
        except TypeError:
            pass
    if isinstance(section.get("port"), str):
        section["port"] = int(section["port"])
    return {"type": RETHINKDB, RETHINKDB: section}


def config_loader(
    config: t.Optional[str] = None,
    schema_url: t.Optional[str] = None,
    s3_schema_url: t.Optional[str] = None,
) -> dict:
    """
    Loads a configuration file from a local path or S3 URL or URL and returns the river document.
    """

    def download_from_s3(s3_url: str) -> str:
        parsed = urlparse(s3_url)
        if not parsed.netloc or not parsed.path:
            raise ValueError(f"Invalid S3 URL: {s3_url}")
        bucket = parsed.netloc
        key = parsed.path.lstrip("/")
        s3 = boto3.client("s3")
        temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".json")
        temp_file.close()
        s3.download_file(bucket, key, temp_file.name)
        return temp_file.name

    def download_from_url(url: str) -> dict:
        response: requests.Response = requests.get(
            url, headers={"Accept": "application/json"}, timeout=(10, 60)
        )
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            content_type = response.headers.get("Content-Type", "unknown")
            raise ValueError(
                f"Expected JSON from {url} (got Content-Type: {content_type})"
            ) from e

    validate_config(
        config=config, schema_url=schema_url, s3_schema_url=s3_schema_url
    )

    if config:
        with open(config, "r") as f:
            return river_document(json.load(f))

    if schema_url:
        return river_document(download_from_url(schema_url))

    path: str = download_from_s3(s3_schema_url)
    try:
        with open(path, "r") as f:
            return river_document(json.load(f))
    finally:
        if os.path.exists(path):
            os.remove(path)


class MutuallyExclusiveOption(click.Option):
    """
    A custom Click option that allows for mutually exclusive arguments.

    Args:
        click.Option: The base class for Click options.

    Attributes:
        mutually_exclusive (set): A set of argument names that are mutually exclusive with this option.
    """

    def __init__(self, *args, **kwargs):
        self.mutually_exclusive: t.Set = set(
            kwargs.pop("mutually_exclusive", [])
        )
        help: str = kwargs.get("help", "")
        if self.mutually_exclusive:
            kwargs["help"] = help + (
                f" NOTE: This argument is mutually exclusive with "
                f" arguments: [{', '.join(self.mutually_exclusive)}]."
            )
        super(MutuallyExclusiveOption, self).__init__(*args, **kwargs)

    def handle_parse_result(
        self,
        ctx: click.Context,
        opts: t.Mapping[str, t.Any],
        args: t.List[str],
    ) -> t.Tuple[t.Any, t.List[str]]:
        if self.mutually_exclusive.intersection(opts) and self.name in opts:
            raise click.UsageError(
                f"Illegal usage: `{self.name}` is mutually exclusive with "
                f"arguments `{', '.join(self.mutually_exclusive)}`."
            )

        return super(MutuallyExclusiveOption, self).handle_parse_result(
            ctx, opts, args
        )
