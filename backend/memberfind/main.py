"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from memberfind.api import members, ops
from memberfind.api.errors import install_error_handlers
from memberfind.infra import postgres
from memberfind.obs import init as obs_init


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		yield
	finally:
		await postgres.close_pool()


app = FastAPI(title="memberfind", lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

app.include_router(members.router, tags=["members"])
app.include_router(ops.router, tags=["ops"])
