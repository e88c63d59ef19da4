import logging
from contextlib import asynccontextmanager
from pathlib import Path, PurePosixPath

import uvicorn
import yaml
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from pagecache.cache import Cache, CacheMap
from pagecache.frontmatter import parse_page
from pagecache.render import compile_scss
from pagecache.runtime import BlockingRuntime
from pagecache.site_config import SiteConfig, parse_site_config

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).parent
PAGE_FILE = "page.md"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown hooks."""
    # Startup
    settings = load_settings()
    runtime = BlockingRuntime(
        max_workers=settings.get("runtime", {}).get("thread_pool_workers", 2)
    )
    check_interval = settings.get("cache", {}).get("check_interval_ms", 2000) / 1000

    site_settings = settings.get("site", {})
    content_root = (BASE_DIR / site_settings.get("root", "site")).resolve()
    config_file = content_root / site_settings.get("config_file", "_config.yaml")
    stylesheet = content_root / site_settings.get("stylesheet", "_style/default.scss")

    # Caches live for the lifetime of the app, handlers reach them via app.state
    app.state.settings = settings
    app.state.runtime = runtime
    app.state.content_root = content_root
    app.state.site_config = Cache(
        config_file,
        SiteConfig(),
        parse_site_config,
        check_interval=check_interval,
        runtime=runtime,
    )
    app.state.pages = CacheMap(
        runtime.offload(parse_page),
        check_interval=check_interval,
        runtime=runtime,
    )
    # SCSS compilation is CPU-bound, keep it off the event loop
    app.state.stylesheet = Cache(
        stylesheet,
        None,
        runtime.offload(compile_scss),
        check_interval=check_interval,
        runtime=runtime,
    )
    logger.info("Serving pages from %s", content_root)

    yield

    # Shutdown
    runtime.shutdown()
    logger.info("Runtime stopped")


app = FastAPI(title="Page Server", lifespan=lifespan)
templates = Jinja2Templates(directory=BASE_DIR / "templates")


def to_components(url_path: str) -> list[str] | None:
    """
    Split a URL path into its components.

    Returns None for relative paths, empty components and hidden
    (dot- or underscore-prefixed) names.

    Examples:
        "/" -> []
        "/blog/post/" -> ["blog", "post"]
        "/_config.yaml" -> None
    """
    if not url_path.startswith("/"):
        return None
    url_path = url_path[1:]
    if not url_path:
        return []
    if url_path.endswith("/"):
        url_path = url_path[:-1]
    components = url_path.split("/")
    for c in components:
        if not c or c.startswith(".") or c.startswith("_"):
            return None
    return components


async def is_file(app: FastAPI, path: Path) -> bool:
    """Existence check run in the blocking runtime."""
    return await app.state.runtime.run(path.is_file)


async def current_site_config(app: FastAPI) -> SiteConfig:
    """Reload the site config, falling back to the last good one on error."""
    cache = app.state.site_config
    config, err = await cache.reload()
    if err:
        logger.warning("Error reloading `%s`: %s", cache.path, err)
    return config


@app.get("/default.css")
async def default_css(request: Request):
    """Serve the compiled site stylesheet, or the last good one on error."""
    cache = request.app.state.stylesheet
    css, err = await cache.load()
    if err:
        logger.warning("Error reloading `%s`: %s", cache.path, err)
    if css is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=css, media_type="text/css")


@app.get("/{url_path:path}")
async def serve(request: Request, url_path: str):
    """Serve a page directory, an allowed file, or redirect to the page form."""
    path = "/" + url_path
    components = to_components(path)
    if components is None:
        raise HTTPException(status_code=404, detail="Not found")

    config = await current_site_config(request.app)
    content_root: Path = request.app.state.content_root

    if path.endswith("/"):
        return await render_page(
            request, content_root.joinpath(*components, PAGE_FILE), config
        )

    extension = PurePosixPath(components[-1]).suffix
    if not extension:
        return RedirectResponse(url=path + "/")

    file_path = content_root.joinpath(*components)
    if config.allows(extension) and await is_file(request.app, file_path):
        return FileResponse(file_path)
    raise HTTPException(status_code=404, detail="Not found")


async def render_page(request: Request, page_path: Path, config: SiteConfig):
    pages: CacheMap = request.app.state.pages
    # Only track files that exist, unknown URLs must not grow the cache
    if page_path not in pages and not await is_file(request.app, page_path):
        raise HTTPException(status_code=404, detail="Not found")

    page, err = await pages.load(page_path)
    if err:
        logger.warning("Error reloading `%s`: %s", page_path, err)
    if page is None:
        raise HTTPException(status_code=404, detail="Not found")

    title = page.title or config.title
    return templates.TemplateResponse(
        request, "page.html", {"page": page, "title": title, "site": config}
    )


def load_settings():
    """Load settings from config/settings.yaml."""
    settings_path = BASE_DIR / "config" / "settings.yaml"
    with open(settings_path) as f:
        return yaml.safe_load(f) or {}


if __name__ == "__main__":
    settings = load_settings()
    server = settings.get("server", {})
    uvicorn.run(
        app,
        host=server.get("host", "127.0.0.1"),
        port=server.get("port", 8080),
    )
