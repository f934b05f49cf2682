"""FastAPI application entrypoint."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import ops
from app.api.errors import install_error_handlers
from app.api.middleware_request_id import RequestIdMiddleware
from app.communities.api import router as communities_router
from app.communities.search.cache import InMemorySearchCache, get_search_cache
from app.infra import postgres
from app.obs import init as obs_init
from app.settings import settings

_LOG = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	worker_tasks: list[asyncio.Task] = []
	search_cache = get_search_cache()
	if isinstance(search_cache, InMemorySearchCache) and settings.search_cache_sweep_seconds > 0:
		worker_tasks.append(
			asyncio.create_task(
				search_cache.run_sweeper(settings.search_cache_sweep_seconds),
				name="search-cache-sweeper",
			)
		)
	_LOG.info("startup_complete", extra={"service": settings.service_name, "env": settings.environment})
	try:
		yield
	finally:
		for task in worker_tasks:
			task.cancel()
		await asyncio.gather(*worker_tasks, return_exceptions=True)
		await postgres.close_pool()


app = FastAPI(title="Campus Communities API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins and settings.is_dev():
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else [o for o in allow_origins if o != "*"]

if allow_origins:
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

obs_init(app)

# Ensure every request carries an X-Request-Id and make it available on request.state
app.add_middleware(RequestIdMiddleware)

app.include_router(ops.router)
app.include_router(communities_router)
