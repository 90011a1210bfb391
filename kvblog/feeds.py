"""
RSS feed, sitemap and robots.txt generation for published articles.
"""
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, Iterable, Optional
from xml.sax.saxutils import escape

from kvblog.article_store import parse_create_date
from kvblog.config import BlogOptions

_EPOCH_FLOOR = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ATTR_ENTITIES = {'"': "&quot;"}


def _cdata(text: Optional[str]) -> str:
    """Wrap text in a CDATA section, splitting any ']]>' inside it."""
    text = (text or "").replace("]]>", "]]]]><![CDATA[>")
    return f"<![CDATA[{text}]]>"


def _article_date(article: Dict[str, Any]) -> Optional[datetime]:
    parsed = parse_create_date(article.get("createDate"))
    return parsed if parsed >= _EPOCH_FLOOR else None


def generate_rss(options: BlogOptions, articles: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> str:
    """
    Build an RSS 2.0 document.

    Args:
        options: Site settings
        articles: Published index entries, newest first
        now: Build time (defaults to the current UTC time)
    """
    now = now or datetime.now(timezone.utc)
    site_url = options.site_url
    items = []
    for article in articles:
        link = f"{site_url}/article/{escape(article.get('permalink') or '')}"
        lines = [
            "        <item>",
            f"            <title>{_cdata(article.get('title'))}</title>",
            f"            <description>{_cdata(article.get('excerpt'))}</description>",
            f"            <content:encoded>{_cdata(article.get('excerpt'))}</content:encoded>",
            f"            <link>{link}</link>",
            f'            <guid isPermaLink="true">{link}</guid>',
        ]
        published = _article_date(article)
        if published is not None:
            lines.append(f"            <pubDate>{format_datetime(published.astimezone(timezone.utc), usegmt=True)}</pubDate>")
        lines.append(f"            <category>{_cdata(article.get('label'))}</category>")
        lines.append(f"            <dc:creator>{_cdata(options.site_name)}</dc:creator>")
        if article.get("img"):
            img_url = escape(article["img"], _ATTR_ENTITIES)
            lines.append(f'            <enclosure url="{img_url}" type="image/jpeg" />')
        lines.append("        </item>")
        items.append("\n".join(lines))

    return "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom" '
        'xmlns:content="http://purl.org/rss/1.0/modules/content/" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/">',
        "    <channel>",
        f"        <title>{_cdata(options.site_name)}</title>",
        f"        <description>{_cdata(options.site_description)}</description>",
        f"        <link>{site_url}</link>",
        f'        <atom:link href="{site_url}/rss.xml" rel="self" type="application/rss+xml" />',
        "        <language>en-us</language>",
        f"        <lastBuildDate>{format_datetime(now, usegmt=True)}</lastBuildDate>",
        "        <generator>kvblog</generator>",
        "        <ttl>60</ttl>",
        *items,
        "    </channel>",
        "</rss>",
    ])


def generate_sitemap(options: BlogOptions, articles: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> str:
    """
    Build a sitemap listing the home page and every published article.

    Args:
        options: Site settings
        articles: Published index entries
        now: Build time (defaults to the current UTC time)
    """
    now = now or datetime.now(timezone.utc)
    site_url = options.site_url
    urls = [
        "    <url>",
        f"        <loc>{site_url}</loc>",
        f"        <lastmod>{now.date().isoformat()}</lastmod>",
        "        <changefreq>daily</changefreq>",
        "        <priority>1.0</priority>",
        "    </url>",
    ]
    for article in articles:
        urls.append("    <url>")
        urls.append(f"        <loc>{site_url}/article/{escape(article.get('permalink') or '')}</loc>")
        published = _article_date(article)
        if published is not None:
            urls.append(f"        <lastmod>{published.date().isoformat()}</lastmod>")
        urls.append("        <changefreq>monthly</changefreq>")
        urls.append("        <priority>0.8</priority>")
        if article.get("img"):
            urls.append("        <image:image>")
            urls.append(f"            <image:loc>{escape(article['img'])}</image:loc>")
            urls.append(f"            <image:title>{escape(article.get('title') or '')}</image:title>")
            urls.append("        </image:image>")
        urls.append("    </url>")

    return "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9" '
        'xmlns:image="http://www.google.com/schemas/sitemap-image/1.1">',
        *urls,
        "</urlset>",
    ])


def generate_robots(options: BlogOptions) -> str:
    """Return the robots.txt body, pointing crawlers at the sitemap."""
    return f"{options.robots_txt}\nSitemap: {options.site_url}/sitemap.xml\n"
