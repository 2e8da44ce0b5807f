"""FastAPI application entry point of the global search API."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.host.HostClientManager import HostClientManager
from shared.stores.ConfigStoreManager import ConfigStoreManager
from services.search_index.SearchManager import create_search_manager
from server.core.IndexService import IndexService
from server.core.QueryService import QueryService
from server.routers.IndexRouter import router as index_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    config_store = ConfigStoreManager(helper_config=app.state.helper_config).get_store()
    host_client = HostClientManager(helper_config=app.state.helper_config).get_client()

    logging.info("Booting host client...")
    await host_client.boot()
    try:
        result = await host_client.do_healthcheck()
        if not result.is_success:
            logging.warning(
                "Host client '%s' is not healthy (status %d). Indexing and access checks may fail.",
                host_client.get_engine_name(),
                result.status_code,
            )
    except httpx.HTTPError as e:
        logging.warning("Host client '%s' is not reachable: %s. Indexing and access checks may fail.", host_client.get_engine_name(), e)

    # fatal if the engine is not ready, queries can not be served without it
    search_manager = await create_search_manager(
        helper_config=app.state.helper_config,
        host_client=host_client,
        config_store=config_store,
    )
    logging.info("Search engine '%s' is ready.", search_manager.get_engine().get_engine_name(), color="green")

    app.state.host_client = host_client
    app.state.search_manager = search_manager
    app.state.query_service = QueryService(helper_config=app.state.helper_config, search_manager=search_manager)
    app.state.index_service = IndexService(helper_config=app.state.helper_config, search_manager=search_manager)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    await search_manager.close()
    await host_client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="globalsearch",
    description=(
        "Global search layer of the learning platform. "
        "Content of the enabled search sources is indexed incrementally into the search engine "
        "via POST /index and served, filtered by the user's access, via POST /query."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query_router)
app.include_router(index_router)


@app.get("/healthz", tags=["health"])
async def healthz() -> dict:
    """Liveness check, its access log lines are filtered out."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting globalsearch API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
