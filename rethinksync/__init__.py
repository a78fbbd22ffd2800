"""RethinkDB to Elasticsearch/OpenSearch sync."""

__author__ = "rethinksync contributors"
__version__ = "1.0.0"
