"""
Configuration management for the blog.
Loads environment variables and provides access to configuration settings.
"""
import logging
import os
import re
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_THEME_BASE_URL = "https://raw.githubusercontent.com/OshekharO/CF-BLOG/main/themes/"

_THEME_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


def _env_int(key: str, default: int) -> int:
    """Read a positive integer env var, falling back to default."""
    try:
        value = int(os.getenv(key, str(default)))
    except ValueError:
        logger.warning("Ignoring non-integer value for %s", key)
        return default
    return value if value > 0 else default


def _env_float(key: str, default: float) -> float:
    """Read a non-negative float env var, falling back to default."""
    try:
        value = float(os.getenv(key, str(default)))
    except ValueError:
        logger.warning("Ignoring non-numeric value for %s", key)
        return default
    return value if value >= 0 else default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ["true", "1", "yes"]


@dataclass(frozen=True)
class BlogOptions:
    """
    Immutable snapshot of the site settings used while serving one request.

    Request-scoped changes (such as a ?theme= override) produce a new value
    via with_theme() instead of mutating shared state.
    """

    site_name: str
    site_domain: str
    site_description: str
    keywords: str
    copyright: str
    page_size: int
    read_more_length: int
    theme_base_url: str
    theme_name: str
    robots_txt: str
    code_before_head: str = ""
    code_before_body: str = ""

    @property
    def theme_url(self) -> str:
        """Base URL the theme's templates are fetched from."""
        return f"{self.theme_base_url.rstrip('/')}/{self.theme_name}/"

    @property
    def site_url(self) -> str:
        return f"https://{self.site_domain}"

    def with_theme(self, theme_name: Optional[str]) -> "BlogOptions":
        """
        Return options using another theme.

        Unknown-looking names (anything but letters, digits, '-' and '_')
        are ignored and the current options are returned unchanged.
        """
        if not theme_name or not _THEME_NAME.match(theme_name):
            return self
        return replace(self, theme_name=theme_name)


class Config:
    """Configuration settings loaded from environment variables."""

    def __init__(self):
        """Initialize configuration by loading environment variables."""
        load_dotenv()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a configuration value by key.

        Args:
            key: Configuration key name
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return os.getenv(key, default)

    @property
    def site_name(self) -> str:
        """Get the site name."""
        return os.getenv("SITE_NAME", "KV Blog")

    @property
    def site_domain(self) -> str:
        """Get the public domain used in feeds and sitemaps."""
        return os.getenv("SITE_DOMAIN", "localhost:5000")

    @property
    def site_description(self) -> str:
        """Get the site description."""
        return os.getenv("SITE_DESCRIPTION", "A blog powered by a key-value store")

    @property
    def site_keywords(self) -> str:
        """Get the meta keywords."""
        return os.getenv("SITE_KEYWORDS", "blog,kv")

    @property
    def copyright(self) -> str:
        """Get the footer copyright line."""
        return os.getenv("COPYRIGHT", "Powered by kvblog")

    @property
    def page_size(self) -> int:
        """Get the default number of articles per page."""
        return _env_int("PAGE_SIZE", 10)

    @property
    def read_more_length(self) -> int:
        """Get the excerpt length in characters."""
        return _env_int("READ_MORE_LENGTH", 150)

    @property
    def theme_base_url(self) -> str:
        """Get the URL under which theme directories live."""
        return os.getenv("THEME_BASE_URL", DEFAULT_THEME_BASE_URL)

    @property
    def theme_name(self) -> str:
        """Get the default theme name."""
        return os.getenv("THEME_NAME", "minimal")

    @property
    def theme_fetch_timeout(self) -> float:
        """Get the theme template fetch timeout in seconds."""
        return _env_float("THEME_FETCH_TIMEOUT", 5.0)

    @property
    def theme_cache_ttl(self) -> float:
        """Get how long fetched templates are cached, in seconds."""
        return _env_float("THEME_CACHE_TTL", 300.0)

    @property
    def index_cache_ttl(self) -> float:
        """Get how long the article index and records are cached, in seconds."""
        return _env_float("INDEX_CACHE_TTL", 60.0)

    @property
    def export_requires_auth(self) -> bool:
        """Check whether GET /api/export is restricted to admins."""
        return _env_bool("EXPORT_REQUIRES_AUTH", True)

    @property
    def robots_txt(self) -> str:
        """Get the robots.txt body."""
        return os.getenv("ROBOTS_TXT", "User-agent: *\nDisallow: /admin")

    @property
    def code_before_head(self) -> str:
        """Get markup injected before </head>."""
        return os.getenv("CODE_BEFORE_HEAD", "")

    @property
    def code_before_body(self) -> str:
        """Get markup injected before </body>."""
        return os.getenv("CODE_BEFORE_BODY", "")

    @property
    def server_host(self) -> str:
        """Get blog server host."""
        return os.getenv("SERVER_HOST", "127.0.0.1")

    @property
    def server_port(self) -> int:
        """Get blog server port."""
        return _env_int("SERVER_PORT", 5000)

    def blog_options(self) -> BlogOptions:
        """Snapshot the current settings into an immutable BlogOptions."""
        return BlogOptions(
            site_name=self.site_name,
            site_domain=self.site_domain,
            site_description=self.site_description,
            keywords=self.site_keywords,
            copyright=self.copyright,
            page_size=self.page_size,
            read_more_length=self.read_more_length,
            theme_base_url=self.theme_base_url,
            theme_name=self.theme_name,
            robots_txt=self.robots_txt,
            code_before_head=self.code_before_head,
            code_before_body=self.code_before_body,
        )
