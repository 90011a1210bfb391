"""
Unit tests for the article API endpoints.
"""
import asyncio
import json

import pytest
from fastapi import HTTPException

from kvblog.article_store import INDEX_KEY, LOSS_NOTICE
from tests.helpers import get_route_endpoint, make_request, response_json

ADMIN = ("admin", "admin")


def _save(app, article, auth=ADMIN):
    endpoint = get_route_endpoint(app, "/api/articles", "POST")
    return asyncio.run(endpoint(make_request(body=article, auth=auth)))


class TestArticleWrites:
    """Test suite for creating, updating and deleting articles."""

    def test_create_article(self, blog_app):
        """Test POST /api/articles creates the first article."""
        response = _save(blog_app, {"title": "Hello World!", "contentMarkdown": "# Hi\n\n**Body**"})
        assert response.status_code == 200
        assert response_json(response) == {"success": True, "id": "000001"}
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    def test_create_requires_auth(self, blog_app):
        """Test that anonymous writes are rejected with a Basic challenge."""
        with pytest.raises(HTTPException) as exc_info:
            _save(blog_app, {"title": "Nope"}, auth=None)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers["WWW-Authenticate"].startswith("Basic")

    def test_create_rejects_wrong_password(self, blog_app):
        with pytest.raises(HTTPException) as exc_info:
            _save(blog_app, {"title": "Nope"}, auth=("admin", "wrong"))
        assert exc_info.value.status_code == 401

    def test_create_invalid_payload(self, blog_app):
        """Test that a payload without title or permalink is a 400."""
        with pytest.raises(HTTPException) as exc_info:
            _save(blog_app, {"content": "orphan"})
        assert exc_info.value.status_code == 400

    def test_create_invalid_json(self, blog_app):
        """Test that an unparseable body is a 400."""
        endpoint = get_route_endpoint(blog_app, "/api/articles", "POST")
        request = make_request(auth=ADMIN)

        async def bad_json():
            raise json.JSONDecodeError("Expecting value", "", 0)

        request.json = bad_json
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint(request))
        assert exc_info.value.status_code == 400

    def test_update_article(self, blog_app):
        """Test PUT /api/articles/{permalink} merges fields."""
        _save(blog_app, {"title": "Draft Title", "content": "first", "label": "a"})
        endpoint = get_route_endpoint(blog_app, "/api/articles/{permalink}", "PUT")
        response = asyncio.run(endpoint(
            "draft-title", make_request(body={"content": "second", "id": "999999"}, auth=ADMIN)
        ))
        assert response_json(response) == {"success": True, "id": "000001"}

        article = blog_app.state.article_store.get("000001")
        assert article["content"] == "second"
        assert article["contentMarkdown"] == "second"
        assert article["label"] == "a"
        assert article["permalink"] == "draft-title"

    def test_update_unknown_article(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/articles/{permalink}", "PUT")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint("missing", make_request(body={}, auth=ADMIN)))
        assert exc_info.value.status_code == 404

    def test_delete_article(self, blog_app):
        _save(blog_app, {"title": "Doomed", "content": "x"})
        endpoint = get_route_endpoint(blog_app, "/api/articles/{permalink}", "DELETE")
        response = asyncio.run(endpoint("doomed", make_request(auth=ADMIN)))
        assert response_json(response) == {"success": True}
        assert blog_app.state.article_store.list_all() == []

    def test_delete_unknown_article(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/articles/{permalink}", "DELETE")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint("missing", make_request(auth=ADMIN)))
        assert exc_info.value.status_code == 404

    def test_generate_slug(self, blog_app):
        _save(blog_app, {"title": "Hello World!", "content": "x"})
        endpoint = get_route_endpoint(blog_app, "/api/generate-slug", "POST")
        response = asyncio.run(endpoint(make_request(body={"title": "Hello World!"}, auth=ADMIN)))
        assert response_json(response) == {"slug": "hello-world-1"}

    def test_generate_slug_requires_title(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/generate-slug", "POST")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint(make_request(body={}, auth=ADMIN)))
        assert exc_info.value.status_code == 400


class TestArticleReads:
    """Test suite for the public read endpoints."""

    @pytest.fixture
    def populated(self, blog_app):
        for n in range(3):
            _save(blog_app, {
                "title": f"Post {n}",
                "content": "body",
                "label": "python" if n else "rust",
                "createDate": f"2024-01-0{n + 1}T00:00:00Z",
            })
        _save(blog_app, {"title": "Secret", "content": "x", "status": "draft", "label": "python"})
        return blog_app

    def test_list_published(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles")
        articles = response_json(asyncio.run(endpoint(make_request())))
        assert [a["title"] for a in articles] == ["Post 2", "Post 1", "Post 0"]
        assert "content" not in articles[0]

    def test_list_paginated(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles")
        request = make_request(query={"paginate": "true", "page": "2", "pageSize": "2"})
        result = response_json(asyncio.run(endpoint(request)))
        assert [a["title"] for a in result["articles"]] == ["Post 0"]
        assert result["pagination"]["totalPages"] == 2
        assert result["pagination"]["hasPrevPage"] is True

    def test_list_paginated_ignores_bad_numbers(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles")
        request = make_request(query={"paginate": "true", "page": "abc"})
        result = response_json(asyncio.run(endpoint(request)))
        assert result["pagination"]["page"] == 1

    def test_list_drafts_requires_admin(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint(make_request(query={"drafts": "true"})))
        assert exc_info.value.status_code == 401

        drafts = response_json(asyncio.run(endpoint(make_request(query={"drafts": "true"}, auth=ADMIN))))
        assert [a["title"] for a in drafts] == ["Secret"]

    def test_get_article(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles/{permalink}")
        article = response_json(asyncio.run(endpoint("post-1", make_request())))
        assert article["title"] == "Post 1"
        assert article["content"] == "body"

    def test_draft_hidden_from_anonymous(self, populated):
        endpoint = get_route_endpoint(populated, "/api/articles/{permalink}")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint("secret", make_request()))
        assert exc_info.value.status_code == 404

        article = response_json(asyncio.run(endpoint("secret", make_request(auth=ADMIN))))
        assert article["status"] == "draft"

    def test_categories(self, populated):
        endpoint = get_route_endpoint(populated, "/api/categories")
        assert response_json(asyncio.run(endpoint())) == {"python": 2, "rust": 1}


class TestBulkEndpoints:
    """Test suite for export, import and maintenance endpoints."""

    def test_export_requires_auth_by_default(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/export")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint(make_request()))
        assert exc_info.value.status_code == 401

    def test_export(self, blog_app):
        _save(blog_app, {"title": "Exported", "content": "full body"})
        endpoint = get_route_endpoint(blog_app, "/api/export")
        response = asyncio.run(endpoint(make_request(auth=ADMIN)))
        assert response.headers["Content-Disposition"].startswith('attachment; filename="blog-export-')
        exported = json.loads(response.body)
        assert exported[0]["content"] == "full body"

    def test_public_export_when_configured(self, local_store, theme_fetcher, monkeypatch):
        monkeypatch.setenv("EXPORT_REQUIRES_AUTH", "false")
        from kvblog.config import Config
        from server import create_blog_app
        app = create_blog_app(store=local_store, config=Config(), theme_fetcher=theme_fetcher)
        endpoint = get_route_endpoint(app, "/api/export")
        assert json.loads(asyncio.run(endpoint(make_request())).body) == []

    def test_import(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/import", "POST")
        body = [
            {"id": "000005", "title": "Kept Id", "content": "a"},
            {"title": "New", "content": "b"},
            {"title": "Broken", "status": "bogus"},
        ]
        result = response_json(asyncio.run(endpoint(make_request(body=body, auth=ADMIN))))
        assert result["imported"] == 2
        assert result["message"] == "Successfully imported 2 articles with 1 errors"
        assert result["errors"][0]["title"] == "Broken"
        assert blog_app.state.article_store.get_by_permalink("new")["id"] == "000006"

    def test_import_rejects_non_array(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/api/import", "POST")
        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(endpoint(make_request(body={"title": "x"}, auth=ADMIN)))
        assert exc_info.value.status_code == 400

    def test_debug_and_fix_missing(self, blog_app, local_store):
        """Test that lost records are reported and restored as drafts."""
        _save(blog_app, {"title": "Fragile", "content": "x"})
        local_store.delete("000001")
        blog_app.state.article_store.clear_cache()

        debug = get_route_endpoint(blog_app, "/api/debug")
        report = response_json(asyncio.run(debug(make_request(auth=ADMIN))))
        assert report["allArticles"][0]["exists"] is False

        fix = get_route_endpoint(blog_app, "/api/fix-missing-articles", "POST")
        result = response_json(asyncio.run(fix(make_request(auth=ADMIN))))
        assert result == {"success": True, "repaired": ["000001"]}

        article = blog_app.state.article_store.get_by_permalink("fragile")
        assert article["status"] == "draft"
        assert article["content"] == LOSS_NOTICE

    def test_debug_requires_admin(self, blog_app):
        debug = get_route_endpoint(blog_app, "/api/debug")
        with pytest.raises(HTTPException):
            asyncio.run(debug(make_request()))

    def test_unknown_api_path(self, blog_app):
        endpoint = get_route_endpoint(blog_app, "/{path:path}")
        response = asyncio.run(endpoint("api/nothing", make_request()))
        assert response.status_code == 404
        assert response_json(response) == {"error": "Not found"}

    @pytest.mark.parametrize("bad_id", ["SYSTEM_ADMINS", "abc"])
    def test_create_rejects_system_keys(self, blog_app, bad_id):
        """Test that an article cannot be written over a non-article key."""
        directory = blog_app.state.admin_directory
        directory.create_admin("editor", "pw", "editor@example.com")
        with pytest.raises(HTTPException) as exc_info:
            _save(blog_app, {"id": bad_id, "title": "x"}, auth=("editor", "pw"))
        assert exc_info.value.status_code == 400
        assert [a["username"] for a in directory.list_admins()] == ["admin", "editor"]

    def test_create_pads_integer_id(self, blog_app):
        response = _save(blog_app, {"id": 7, "title": "Seven"})
        assert response_json(response) == {"success": True, "id": "000007"}

    def test_index_written_on_save(self, blog_app, accessor):
        _save(blog_app, {"title": "Indexed", "content": "x"})
        assert [e["permalink"] for e in accessor.get_json(INDEX_KEY)] == ["indexed"]
