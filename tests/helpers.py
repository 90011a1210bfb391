"""
Test helpers shared across suites: mock S3 responses, mock requests,
route lookup.
"""
import base64
import json
from unittest.mock import MagicMock, Mock


def setup_mock_get_object(mock_s3_client, text):
    """
    Helper to setup mock get_object response.

    Args:
        mock_s3_client: Mock S3 client
        text: Body returned from get_object
    """
    mock_body = Mock()
    mock_body.read.return_value = text.encode('utf-8')
    mock_s3_client.get_object.return_value = {"Body": mock_body}


def setup_mock_no_such_key(mock_s3_client):
    """
    Helper to setup mock NoSuchKey error.

    Args:
        mock_s3_client: Mock S3 client
    """
    from botocore.exceptions import ClientError
    error_response = {'Error': {'Code': 'NoSuchKey'}}
    mock_s3_client.get_object.side_effect = ClientError(error_response, 'GetObject')
    mock_s3_client.head_object.side_effect = ClientError({'Error': {'Code': '404'}}, 'HeadObject')


def basic_auth(username, password):
    """Build a Basic Authorization header value."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def make_request(body=None, query=None, auth=None):
    """
    Create a mock FastAPI request.

    Args:
        body: Value returned by request.json()
        query: Query parameters
        auth: Optional (username, password) sent as Basic credentials
    """
    mock_request = MagicMock()

    async def mock_json():
        return body

    mock_request.json = mock_json
    mock_request.query_params = dict(query or {})
    mock_request.headers = {"Authorization": basic_auth(*auth)} if auth else {}
    return mock_request


def get_route_endpoint(app, path, method="GET"):
    """Helper to find a route endpoint by path and method."""
    for route in app.routes:
        if hasattr(route, "path") and route.path == path:
            if hasattr(route, "methods") and method in route.methods:
                return route.endpoint
    return None


def response_json(response):
    """Decode a JSONResponse body."""
    return json.loads(response.body)
