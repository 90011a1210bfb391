#!/usr/bin/env python
"""
Run the blog server.
"""
import uvicorn

from kvblog.config import Config
from server import create_blog_app


def main():
    """Run the blog server."""
    # Load configuration
    config = Config()

    app = create_blog_app(config=config)

    print("Starting blog server...")
    print(f"Site: {config.site_name} ({config.site_domain})")
    print(f"Listening on http://{config.server_host}:{config.server_port}")

    # Run uvicorn server
    uvicorn.run(
        app,
        host=config.server_host,
        port=config.server_port,
        log_level="info"
    )


if __name__ == "__main__":
    main()
