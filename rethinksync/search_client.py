"""RethinkSync SearchClient helper."""

import logging
import typing as t

import boto3
import elastic_transport
import elasticsearch
import elasticsearch.helpers
import opensearchpy
import opensearchpy.helpers
from requests_aws4auth import AWS4Auth

from . import settings
from .constants import DELETE
from .urls import get_search_url

logger = logging.getLogger(__name__)


class SearchClient(object):
    """SearchClient for Elasticsearch 7.14+ or OpenSearch."""

    def __init__(self):
        """
        Return an Elasticsearch/OpenSearch client.

        The default connection parameters are:
        host = 'localhost', port = 9200
        """
        url: str = get_search_url()
        self.is_opensearch: bool = False
        if settings.ELASTICSEARCH:
            self.name = "Elasticsearch"
            self.__client: elasticsearch.Elasticsearch = get_search_client(
                url,
                client=elasticsearch.Elasticsearch,
                node_class=elastic_transport.RequestsHttpNode,
            )
            self.streaming_bulk: t.Callable = (
                elasticsearch.helpers.streaming_bulk
            )
            self.errors: t.Tuple[t.Type[Exception], ...] = (
                elasticsearch.ApiError,
                elastic_transport.TransportError,
            )
            self.NotFoundError = elasticsearch.NotFoundError

        elif settings.OPENSEARCH:
            self.is_opensearch = True
            self.name = "OpenSearch"
            self.__client: opensearchpy.OpenSearch = get_search_client(
                url,
                client=opensearchpy.OpenSearch,
                connection_class=opensearchpy.RequestsHttpConnection,
            )
            self.streaming_bulk: t.Callable = (
                opensearchpy.helpers.streaming_bulk
            )
            self.errors: t.Tuple[t.Type[Exception], ...] = (
                opensearchpy.OpenSearchException,
            )
            self.NotFoundError = opensearchpy.NotFoundError
        else:
            raise RuntimeError("Unknown search client")

        self.doc_count: int = 0

    def close(self) -> None:
        """Close transport connection."""
        self.__client.transport.close()

    def bulk(
        self,
        actions: t.Iterable[t.Dict[str, t.Any]],
        chunk_size: t.Optional[int] = None,
        max_chunk_bytes: t.Optional[int] = None,
        refresh: bool = False,
    ) -> t.Tuple[int, t.Set[str]]:
        """
        Send actions to Elasticsearch/OpenSearch.

        Item failures are collected rather than raised.
        Transport failures propagate to the caller.

        Returns:
            Tuple[int, Set[str]]: the failed item count and the distinct
            failure reasons.
        """
        actions = list(actions)
        chunk_size = chunk_size or max(len(actions), 1)
        max_chunk_bytes = (
            max_chunk_bytes or settings.ELASTICSEARCH_MAX_CHUNK_BYTES
        )
        failed: int = 0
        reasons: t.Set[str] = set()
        for ok, item in self.streaming_bulk(
            self.__client,
            actions,
            chunk_size=chunk_size,
            max_chunk_bytes=max_chunk_bytes,
            refresh=refresh,
            raise_on_error=False,
            raise_on_exception=True,
        ):
            if ok:
                self.doc_count += 1
                continue
            op_type, result = item.popitem()
            # deleting a document that was never indexed is not an error
            if op_type == DELETE and result.get("status") == 404:
                continue
            failed += 1
            reasons.add(failure_reason(result))
        return failed, reasons

    def update_document(
        self,
        index: str,
        doc_id: str,
        doc: dict,
        retry_on_conflict: int = 0,
    ) -> None:
        """Merge a partial document into an existing document."""
        if self.is_opensearch:
            self.__client.update(
                index=index,
                id=doc_id,
                body={"doc": doc},
                retry_on_conflict=retry_on_conflict,
            )
        else:
            self.__client.update(
                index=index,
                id=doc_id,
                doc=doc,
                retry_on_conflict=retry_on_conflict,
            )

    def get_document(self, index: str, doc_id: str) -> t.Optional[dict]:
        """Return the document source or None if it does not exist."""
        try:
            response = self.__client.get(index=index, id=doc_id)
        except self.NotFoundError:
            return None
        return response["_source"]

    def put_document(self, index: str, doc_id: str, doc: dict) -> None:
        """Create or replace a document and make it visible to reads."""
        if self.is_opensearch:
            self.__client.index(index=index, id=doc_id, body=doc, refresh=True)
        else:
            self.__client.index(
                index=index, id=doc_id, document=doc, refresh=True
            )


def failure_reason(result: dict) -> str:
    """
    Return a readable reason for a failed bulk item.

    result = {
        '_id': '1',
        'status': 400,
        'error': {'type': 'mapper_parsing_exception', 'reason': '...'},
    }
    """
    error: t.Any = result.get("error")
    if isinstance(error, dict):
        return f"{error.get('type')}: {error.get('reason')}"
    if error:
        return str(error)
    return f"status {result.get('status')}"


def get_search_client(
    url: str,
    client: t.Union[opensearchpy.OpenSearch, elasticsearch.Elasticsearch],
    connection_class: t.Optional[opensearchpy.RequestsHttpConnection] = None,
    node_class: t.Optional[elastic_transport.RequestsHttpNode] = None,
) -> t.Union[opensearchpy.OpenSearch, elasticsearch.Elasticsearch]:
    """
    Returns a search client based on the specified parameters.

    Args:
        url (str): The URL of the search client.
        client (Union[opensearchpy.OpenSearch, elasticsearch.Elasticsearch]): The search client to use.
        connection_class (opensearchpy.RequestsHttpConnection): The connection class to use.
        node_class (elastic_transport.RequestsHttpNode): The node class to use.

    Returns:
        Union[opensearchpy.OpenSearch, elasticsearch.Elasticsearch]: The search client.
    """
    if settings.OPENSEARCH_AWS_HOSTED or settings.ELASTICSEARCH_AWS_HOSTED:
        credentials = boto3.Session().get_credentials()
        service: str = "aoss" if settings.OPENSEARCH_AWS_SERVERLESS else "es"
        http_auth = AWS4Auth(
            credentials.access_key,
            credentials.secret_key,
            settings.ELASTICSEARCH_AWS_REGION,
            service,
            session_token=credentials.token,
        )
        if settings.OPENSEARCH:
            return client(
                hosts=[url],
                http_auth=http_auth,
                use_ssl=True,
                verify_certs=True,
                connection_class=connection_class,
            )
        return client(
            hosts=[url],
            http_auth=http_auth,
            verify_certs=True,
            node_class=node_class,
            timeout=settings.ELASTICSEARCH_TIMEOUT,
        )

    api_key: t.Optional[t.Tuple[str, str]] = None
    if settings.ELASTICSEARCH_API_KEY_ID and settings.ELASTICSEARCH_API_KEY:
        api_key = (
            settings.ELASTICSEARCH_API_KEY_ID,
            settings.ELASTICSEARCH_API_KEY,
        )
    if settings.OPENSEARCH:
        return client(
            hosts=[url],
            http_auth=settings.ELASTICSEARCH_HTTP_AUTH,
            http_compress=settings.ELASTICSEARCH_HTTP_COMPRESS,
            verify_certs=settings.ELASTICSEARCH_VERIFY_CERTS,
            ca_certs=settings.ELASTICSEARCH_CA_CERTS,
            client_cert=settings.ELASTICSEARCH_CLIENT_CERT,
            client_key=settings.ELASTICSEARCH_CLIENT_KEY,
            ssl_assert_hostname=settings.ELASTICSEARCH_SSL_ASSERT_HOSTNAME,
            ssl_show_warn=settings.ELASTICSEARCH_SSL_SHOW_WARN,
            timeout=settings.ELASTICSEARCH_TIMEOUT,
            connection_class=connection_class,
        )
    return client(
        hosts=[url],
        http_auth=settings.ELASTICSEARCH_HTTP_AUTH,
        cloud_id=settings.ELASTICSEARCH_CLOUD_ID,
        api_key=api_key,
        basic_auth=settings.ELASTICSEARCH_BASIC_AUTH,
        bearer_auth=settings.ELASTICSEARCH_BEARER_AUTH,
        opaque_id=settings.ELASTICSEARCH_OPAQUE_ID,
        http_compress=settings.ELASTICSEARCH_HTTP_COMPRESS,
        verify_certs=settings.ELASTICSEARCH_VERIFY_CERTS,
        ca_certs=settings.ELASTICSEARCH_CA_CERTS,
        client_cert=settings.ELASTICSEARCH_CLIENT_CERT,
        client_key=settings.ELASTICSEARCH_CLIENT_KEY,
        ssl_assert_hostname=settings.ELASTICSEARCH_SSL_ASSERT_HOSTNAME,
        ssl_assert_fingerprint=settings.ELASTICSEARCH_SSL_ASSERT_FINGERPRINT,
        ssl_version=settings.ELASTICSEARCH_SSL_VERSION,
        ssl_context=settings.ELASTICSEARCH_SSL_CONTEXT,
        ssl_show_warn=settings.ELASTICSEARCH_SSL_SHOW_WARN,
        timeout=settings.ELASTICSEARCH_TIMEOUT,
        node_class=node_class,
    )
