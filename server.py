"""
Blog server.
Serves the public read API, the theme-rendered pages, feeds, and the
authenticated admin API for articles and administrators.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from kvblog.admin_directory import AdminDirectory, public_view
from kvblog.article_store import (
    STATUS_DRAFT,
    STATUS_PUBLISHED,
    ArticleStore,
    merge_article_update,
    parse_create_date,
)
from kvblog.auth import REALM, authenticate, is_superadmin
from kvblog.config import BlogOptions, Config
from kvblog.exceptions import AuthorizationError, BlogError, UpstreamFetchError
from kvblog.feeds import generate_robots, generate_rss, generate_sitemap
from kvblog.kv_accessor import KeyValueAccessor
from kvblog.kv_store import KeyValueStore
from kvblog.kv_store_factory import create_kv_store
from kvblog.theme import ThemeFetcher, render_template

# Configure server logger
logger = logging.getLogger('server')
logger.setLevel(logging.INFO)

# Add console handler if not already present
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


def sanitize_log_input(value: str) -> str:
    """
    Sanitize user input for logging to prevent log injection attacks.
    Removes newlines and other control characters that could be used for log forging.

    Args:
        value: The user input to sanitize

    Returns:
        Sanitized string safe for logging
    """
    if not isinstance(value, str):
        value = str(value)
    # Replace newlines, carriage returns, and other control characters
    sanitized = value.replace('\n', '_').replace('\r', '_').replace('\t', '_')
    # Truncate to reasonable length to prevent log flooding
    return sanitized[:200]


def json_response(data: Any, status_code: int = 200) -> JSONResponse:
    """JSON API response with the CORS header."""
    return JSONResponse(content=data, status_code=status_code, headers=CORS_HEADERS)


def _int_param(request: Request, name: str) -> Optional[int]:
    """Parse an integer query parameter; anything unparseable counts as absent."""
    value = request.query_params.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _http_error(label: str, exc: BlogError) -> HTTPException:
    """Log a blog error and translate it into an HTTPException."""
    if exc.status_code >= 500:
        logger.error(f"{label} - {exc.status_code} {sanitize_log_input(exc.message)}")
    else:
        logger.warning(f"{label} - {exc.status_code} {sanitize_log_input(exc.message)}")
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def create_blog_app(
    store: Optional[KeyValueStore] = None,
    config: Optional[Config] = None,
    theme_fetcher: Optional[ThemeFetcher] = None
) -> FastAPI:
    """
    Create the blog FastAPI application.

    Args:
        store: Key-value store backend (defaults to factory-created)
        config: Configuration (defaults to environment-backed Config)
        theme_fetcher: Theme template fetcher (defaults to one built from config)

    Returns:
        FastAPI application instance
    """
    app = FastAPI()  # pylint: disable=redefined-outer-name

    config = config or Config()
    options = config.blog_options()
    accessor = KeyValueAccessor(store if store is not None else create_kv_store())
    article_store = ArticleStore(
        accessor,
        page_size=options.page_size,
        read_more_length=options.read_more_length,
        cache_ttl=config.index_cache_ttl,
    )
    admin_directory = AdminDirectory(accessor)
    if theme_fetcher is None:
        theme_fetcher = ThemeFetcher(
            timeout=config.theme_fetch_timeout,
            cache_ttl=config.theme_cache_ttl,
        )
    export_requires_auth = config.export_requires_auth

    app.state.article_store = article_store
    app.state.admin_directory = admin_directory
    app.state.theme_fetcher = theme_fetcher

    try:
        admin_directory.ensure_default_admin()
    except BlogError as exc:
        logger.error(f"Could not initialize default admin: {exc.message}")

    # ================== AUTH ==================
    def current_admin(request: Request) -> Optional[Dict[str, Any]]:
        """Admin authenticated by the request's Basic credentials, if any."""
        return authenticate(admin_directory, request.headers.get("Authorization"))

    def require_admin(request: Request, label: str) -> Dict[str, Any]:
        admin = current_admin(request)
        if admin is None:
            exc = _http_error(label, AuthorizationError("Authentication required"))
            exc.headers = {"WWW-Authenticate": REALM}
            raise exc
        return admin

    def require_superadmin(request: Request, label: str) -> Dict[str, Any]:
        admin = require_admin(request, label)
        if not is_superadmin(admin):
            raise _http_error(
                label, AuthorizationError("Access denied. Superadmin required.", status_code=403)
            )
        return admin

    async def read_json(request: Request, label: str) -> Any:
        try:
            return await request.json()
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning(f"{label} - 400 Invalid JSON body")
            raise HTTPException(status_code=400, detail="Invalid JSON body") from exc

    def request_options(request: Request) -> BlogOptions:
        """Site options for this request, honoring a ?theme= override."""
        return options.with_theme(request.query_params.get("theme"))

    # ================== ARTICLES API ==================
    @app.get("/api/articles")
    async def list_articles(request: Request):
        """List published articles, or drafts for admins."""
        logger.info("GET /api/articles")
        show_drafts = request.query_params.get("drafts") == "true"
        if show_drafts:
            require_admin(request, "GET /api/articles")

        if request.query_params.get("paginate") == "true":
            result = article_store.list_paginated(
                _int_param(request, "page"),
                _int_param(request, "pageSize"),
                STATUS_DRAFT if show_drafts else STATUS_PUBLISHED,
            )
        elif show_drafts:
            result = article_store.list_drafts()
        else:
            result = article_store.list_published()
        return json_response(result)

    @app.post("/api/articles")
    async def save_article(request: Request):
        """Create or update an article from a JSON body."""
        label = "POST /api/articles"
        logger.info(label)
        require_admin(request, label)
        data = await read_json(request, label)
        try:
            article_id = article_store.save(data)
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200 Saved {article_id}")
        return json_response({"success": True, "id": article_id})

    @app.post("/api/generate-slug")
    async def generate_slug(request: Request):
        """Suggest a unique permalink for a title."""
        label = "POST /api/generate-slug"
        logger.info(label)
        require_admin(request, label)
        data = await read_json(request, label)
        title = data.get("title") if isinstance(data, dict) else None
        try:
            slug = article_store.suggest_permalink(title or "")
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        return json_response({"slug": slug})

    @app.get("/api/articles/{permalink}")
    async def get_article(permalink: str, request: Request):
        """Get one article; drafts are only visible to admins."""
        label = f"GET /api/articles/{sanitize_log_input(permalink)}"
        logger.info(label)
        is_admin = current_admin(request) is not None
        article = article_store.get_by_permalink(permalink, include_drafts=is_admin)
        if article is None:
            logger.warning(f"{label} - 404 Article not found")
            raise HTTPException(status_code=404, detail="Article not found")
        return json_response(article)

    @app.put("/api/articles/{permalink}")
    async def update_article(permalink: str, request: Request):
        """Apply a partial update to an article."""
        label = f"PUT /api/articles/{sanitize_log_input(permalink)}"
        logger.info(label)
        require_admin(request, label)
        existing = article_store.get_by_permalink(permalink)
        if existing is None:
            logger.warning(f"{label} - 404 Article not found")
            raise HTTPException(status_code=404, detail="Article not found")

        data = await read_json(request, label)
        if not isinstance(data, dict):
            logger.warning(f"{label} - 400 Body must be an object")
            raise HTTPException(status_code=400, detail="Article payload must be a JSON object")
        try:
            article_id = article_store.save(merge_article_update(existing, data))
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200")
        return json_response({"success": True, "id": article_id})

    @app.delete("/api/articles/{permalink}")
    async def delete_article(permalink: str, request: Request):
        """Delete an article."""
        label = f"DELETE /api/articles/{sanitize_log_input(permalink)}"
        logger.info(label)
        require_admin(request, label)
        existing = article_store.get_by_permalink(permalink)
        if existing is None:
            logger.warning(f"{label} - 404 Article not found")
            raise HTTPException(status_code=404, detail="Article not found")
        try:
            article_store.delete(existing["id"])
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200")
        return json_response({"success": True})

    @app.get("/api/export")
    async def export_articles(request: Request):
        """Download every article as a JSON attachment."""
        label = "GET /api/export"
        logger.info(label)
        if export_requires_auth:
            require_admin(request, label)
        articles = article_store.export_all()
        filename = f"blog-export-{datetime.now(timezone.utc).date().isoformat()}.json"
        return Response(
            content=json.dumps(articles, indent=2, ensure_ascii=False),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/import")
    async def import_articles(request: Request):
        """Bulk load articles from a JSON array."""
        label = "POST /api/import"
        logger.info(label)
        require_admin(request, label)
        data = await read_json(request, label)
        if not isinstance(data, list):
            logger.warning(f"{label} - 400 Expected array of articles")
            raise HTTPException(status_code=400, detail="Invalid import data. Expected array of articles.")

        result = article_store.import_many(data)
        imported, errors = result["imported"], result["errors"]
        message = f"Successfully imported {imported} articles"
        if errors:
            message += f" with {len(errors)} errors"
        logger.info(f"{label} - 200 {message}")
        return json_response({"success": True, "imported": imported, "errors": errors, "message": message})

    @app.get("/api/categories")
    async def get_categories():
        """Count published articles per label."""
        logger.info("GET /api/categories")
        return json_response(article_store.categories())

    @app.get("/api/debug")
    async def debug_index(request: Request):
        """Show the index next to the records it points at."""
        label = "GET /api/debug"
        logger.info(label)
        require_admin(request, label)
        return json_response(article_store.diagnostics())

    @app.post("/api/fix-missing-articles")
    async def fix_missing_articles(request: Request):
        """Recreate draft placeholders for index entries without records."""
        label = "POST /api/fix-missing-articles"
        logger.info(label)
        require_admin(request, label)
        try:
            repaired = article_store.repair_missing()
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200 Repaired {len(repaired)} articles")
        return json_response({"success": True, "repaired": repaired})

    # ================== ADMINS API ==================
    @app.get("/api/admins")
    async def list_admins(request: Request):
        """List admins without their passwords."""
        label = "GET /api/admins"
        logger.info(label)
        require_superadmin(request, label)
        return json_response([public_view(a) for a in admin_directory.list_admins()])

    @app.post("/api/admins")
    async def create_admin(request: Request):
        """Create an admin."""
        label = "POST /api/admins"
        logger.info(label)
        require_superadmin(request, label)
        data = await read_json(request, label)
        if not isinstance(data, dict):
            data = {}
        try:
            admin = admin_directory.create_admin(
                data.get("username"), data.get("password"), data.get("email"), data.get("role")
            )
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200 Created {sanitize_log_input(admin['username'])}")
        return json_response({"success": True, "admin": public_view(admin)})

    @app.put("/api/admins/{admin_id}")
    async def update_admin(admin_id: str, request: Request):
        """Apply a partial update to an admin."""
        label = f"PUT /api/admins/{sanitize_log_input(admin_id)}"
        logger.info(label)
        require_superadmin(request, label)
        data = await read_json(request, label)
        if not isinstance(data, dict):
            data = {}
        try:
            admin = admin_directory.update_admin(admin_id, data)
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200")
        return json_response({"success": True, "admin": public_view(admin)})

    @app.delete("/api/admins/{admin_id}")
    async def delete_admin(admin_id: str, request: Request):
        """Delete an admin other than the caller."""
        label = f"DELETE /api/admins/{sanitize_log_input(admin_id)}"
        logger.info(label)
        caller = require_superadmin(request, label)
        if admin_directory.get_by_id(admin_id) is None:
            logger.warning(f"{label} - 404 Admin not found")
            raise HTTPException(status_code=404, detail="Admin not found")
        if caller.get("id") == admin_id:
            logger.warning(f"{label} - 400 Cannot delete own account")
            raise HTTPException(status_code=400, detail="Cannot delete your own account")
        try:
            admin_directory.delete_admin(admin_id)
        except BlogError as exc:
            raise _http_error(label, exc) from exc
        logger.info(f"{label} - 200")
        return json_response({"success": True})

    # ================== PAGES ==================
    def base_page_data(opts: BlogOptions) -> Dict[str, Any]:
        # placeholder names are part of the theme contract
        return {
            "siteName": opts.site_name,
            "siteDescription": opts.site_description,
            "keyWords": opts.keywords,
            "copyRight": opts.copyright,
            "codeBeforHead": opts.code_before_head,
            "codeBeforBody": opts.code_before_body,
        }

    def render_page(
        opts: BlogOptions,
        template_name: str,
        data: Optional[Dict[str, Any]] = None,
        status_code: int = 200
    ) -> Response:
        """Fetch a theme template and render it, or report the fetch failure."""
        try:
            template = theme_fetcher.fetch(opts.theme_url, template_name)
        except UpstreamFetchError as exc:
            logger.error(f"Template {template_name} - 500 {exc.message}")
            return PlainTextResponse(f"Error loading template: {exc.message}", status_code=500)
        page_data = base_page_data(opts)
        page_data.update(data or {})
        return HTMLResponse(render_template(template, page_data), status_code=status_code)

    def render_not_found(opts: BlogOptions) -> Response:
        try:
            template = theme_fetcher.fetch(opts.theme_url, "404")
        except UpstreamFetchError:
            return PlainTextResponse("404 - Page Not Found", status_code=404)
        return HTMLResponse(render_template(template, base_page_data(opts)), status_code=404)

    @app.get("/", response_class=HTMLResponse)
    async def index_page(request: Request):
        """Serve the home page."""
        logger.info("GET /")
        return render_page(request_options(request), "index")

    @app.get("/admin/", response_class=HTMLResponse)
    async def admin_page(request: Request):
        """Serve the admin article list."""
        logger.info("GET /admin/")
        require_admin(request, "GET /admin/")
        return render_page(request_options(request), "admin")

    @app.get("/admin/edit", response_class=HTMLResponse)
    async def edit_page(request: Request):
        """Serve the article editor."""
        logger.info("GET /admin/edit")
        require_admin(request, "GET /admin/edit")
        action = "Edit" if request.query_params.get("permalink") else "New"
        return render_page(request_options(request), "edit", {"action": action})

    @app.get("/admin/users", response_class=HTMLResponse)
    async def admin_users_page(request: Request):
        """Serve the admin account manager."""
        logger.info("GET /admin/users")
        require_admin(request, "GET /admin/users")
        return render_page(request_options(request), "admin-users")

    @app.get("/bookmarks", response_class=HTMLResponse)
    async def bookmarks_page(request: Request):
        """Serve the bookmarks page."""
        logger.info("GET /bookmarks")
        return render_page(request_options(request), "bookmarks")

    @app.get("/article/{permalink}", response_class=HTMLResponse)
    async def article_page(permalink: str, request: Request):
        """Serve a published article."""
        logger.info(f"GET /article/{sanitize_log_input(permalink)}")
        opts = request_options(request)
        article = article_store.get_by_permalink(permalink, include_drafts=False)
        if article is None:
            return render_not_found(opts)

        created = parse_create_date(article.get("createDate"))
        return render_page(opts, "article", {
            "title": article.get("title"),
            "createDate": created.date().isoformat() if created.year > 1 else "",
            "label": article.get("label"),
            "img": article.get("img") or "",
            "content": article.get("contentMarkdown") or article.get("content") or "",
        })

    # ================== FEEDS ==================
    @app.get("/rss.xml")
    async def rss_feed():
        """Serve the RSS feed of published articles."""
        logger.info("GET /rss.xml")
        body = generate_rss(options, article_store.list_published())
        return Response(
            content=body,
            media_type="application/rss+xml; charset=utf-8",
            headers={"Cache-Control": "public, max-age=3600"},
        )

    @app.get("/sitemap.xml")
    async def sitemap():
        """Serve the sitemap."""
        logger.info("GET /sitemap.xml")
        body = generate_sitemap(options, article_store.list_published())
        return Response(
            content=body,
            media_type="application/xml; charset=utf-8",
            headers={"Cache-Control": "public, max-age=3600"},
        )

    @app.get("/robots.txt", response_class=PlainTextResponse)
    async def robots_txt():
        """Serve robots.txt."""
        logger.info("GET /robots.txt")
        return PlainTextResponse(generate_robots(options))

    @app.get("/{path:path}")
    async def not_found(path: str, request: Request):
        """Fallback for unknown paths."""
        logger.info(f"GET /{sanitize_log_input(path)} - 404")
        if path.startswith("api/"):
            return json_response({"error": "Not found"}, status_code=404)
        return render_not_found(request_options(request))

    return app
