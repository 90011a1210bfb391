"""
Theme templates: fetching from the theme source and placeholder substitution.

Templates are plain HTML files named <template>.html under the theme URL.
Supported syntax:
- {{field}}: replaced with the HTML-escaped value; 'content' is inserted raw
- {{#img}}...{{/img}}: kept only when an 'img' value is present
Any placeholder left after substitution is removed.
"""
import html
import logging
import re
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from kvblog.cache import TTLCache
from kvblog.exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

RAW_FIELDS = frozenset({"content"})

_IMG_BLOCK = re.compile(r"{{#img}}([\s\S]*?){{/img}}")
_LEFTOVER = re.compile(r"{{[^}]*}}")


def render_template(template: str, data: Dict[str, Any]) -> str:
    """
    Substitute data into a template.

    Args:
        template: Template HTML
        data: Field values; None renders as an empty string

    Returns:
        Rendered HTML
    """
    rendered = template
    for key, value in data.items():
        text = "" if value is None else str(value)
        if key not in RAW_FIELDS:
            text = html.escape(text, quote=True)
        rendered = rendered.replace("{{" + key + "}}", text)

    if data.get("img"):
        rendered = _IMG_BLOCK.sub(lambda m: m.group(1), rendered)
    else:
        rendered = _IMG_BLOCK.sub("", rendered)

    return _LEFTOVER.sub("", rendered)


class ThemeFetcher:
    """Fetches theme templates over HTTP with a timeout, retries and a TTL cache."""

    def __init__(
        self,
        timeout: float = 5.0,
        cache_ttl: float = 300.0,
        retries: int = 2,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds
            cache_ttl: Seconds a fetched template is reused
            retries: Retries on connection errors and 5xx responses
            session: Optional preconfigured requests session
        """
        self.timeout = timeout
        self.cache = TTLCache(cache_ttl)
        if session is None:
            session = requests.Session()
            retry = Retry(
                total=retries,
                backoff_factor=0.3,
                status_forcelist=(500, 502, 503, 504),
                allowed_methods=frozenset({"GET"}),
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def fetch(self, theme_url: str, template_name: str) -> str:
        """
        Get a template's HTML.

        Args:
            theme_url: Base URL of the theme, ending with '/'
            template_name: Template name without extension, e.g. "index"

        Returns:
            Template HTML

        Raises:
            UpstreamFetchError: If the template cannot be fetched
        """
        url = f"{theme_url}{template_name}.html"
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error fetching template %s: %s", url, exc)
            raise UpstreamFetchError(f"Failed to fetch template: {template_name}") from exc

        template = response.text
        self.cache.put(url, template)
        return template

    def clear_cache(self) -> None:
        self.cache.clear()
