"""Microsoft Graph client library.

Architecture:
- client.py: HTTP client with client-credentials auth, throttling retries and paging
- groups.py: GraphGroupDirectory (cached group listing, member listing) and get_graph_client
- exceptions.py: Typed exceptions for error handling
"""
from .client import GraphClient, REQUEST_TIMEOUT, GRAPH_SCOPE
from .exceptions import GraphError, GraphAPIError, GraphAuthenticationError
from .groups import GraphGroupDirectory, get_graph_client

__all__ = [
    "GraphClient",
    "REQUEST_TIMEOUT",
    "GRAPH_SCOPE",
    "GraphError",
    "GraphAPIError",
    "GraphAuthenticationError",
    "GraphGroupDirectory",
    "get_graph_client",
]
