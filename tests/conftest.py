"""
Shared fixtures for blog tests.
"""
import os
import shutil
import tempfile
from unittest.mock import MagicMock

import pytest


@pytest.fixture
def temp_state_dir():
    """Create a temporary state directory."""
    temp_dir = tempfile.mkdtemp()
    state_dir = os.path.join(temp_dir, "state")
    os.makedirs(state_dir, exist_ok=True)
    yield state_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def local_store(temp_state_dir):
    """Create a LocalDiskKeyValueStore in the temporary state directory."""
    from kvblog.local_disk_kv_store import LocalDiskKeyValueStore
    return LocalDiskKeyValueStore(state_dir=temp_state_dir)


@pytest.fixture
def accessor(local_store):
    """Create a KeyValueAccessor over the local store."""
    from kvblog.kv_accessor import KeyValueAccessor
    return KeyValueAccessor(local_store)


@pytest.fixture
def article_store(accessor):
    """Create an ArticleStore with a small excerpt length and caching disabled."""
    from kvblog.article_store import ArticleStore
    return ArticleStore(accessor, page_size=5, read_more_length=20, cache_ttl=0)


@pytest.fixture
def mock_s3_client():
    """Create a mock boto3 S3 client."""
    return MagicMock()


@pytest.fixture
def theme_fetcher():
    """Create a mock ThemeFetcher serving '<name>:' templates with common placeholders."""
    fetcher = MagicMock()
    fetcher.fetch.side_effect = lambda theme_url, name: (
        name + ":{{siteName}}|{{title}}|{{content}}|{{action}}"
    )
    return fetcher


@pytest.fixture
def blog_app(local_store, theme_fetcher):
    """Create the blog FastAPI app over the temporary store."""
    from kvblog.config import Config
    from server import create_blog_app
    return create_blog_app(store=local_store, config=Config(), theme_fetcher=theme_fetcher)
