"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ember.api import ops, rooms
from ember.api.errors import install_error_handlers
from ember.infra import postgres
from ember.infra.migrations import apply_migrations
from ember.maintenance.expiry import deactivate_expired_rooms
from ember.maintenance.scheduler import MaintenanceScheduler
from ember.obs import init as obs_init
from ember.settings import settings

logger = logging.getLogger("ember.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = None
	if settings.store_backend == "postgres":
		pool = await postgres.init_pool()
		if settings.auto_migrate:
			applied = await apply_migrations(pool)
			if applied:
				logger.info("migrations_applied_at_startup", extra={"versions": applied})
	scheduler: MaintenanceScheduler | None = None
	if settings.expiry_sweep_enabled:
		scheduler = MaintenanceScheduler()
		scheduler.start()
		scheduler.schedule_every("room-expiry-sweep", deactivate_expired_rooms, minutes=settings.expiry_sweep_minutes)
		app.state.maintenance_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None and scheduler.running:
			scheduler.shutdown()
		if pool is not None:
			await postgres.close_pool()


app = FastAPI(title="Ember Rooms", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:5173"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	if settings.is_dev():
		allow_origins = [
			"http://localhost:5173",
			"http://127.0.0.1:5173",
			"http://localhost:4173",
			"http://127.0.0.1:4173",
		]
	else:
		allow_origins = [origin for origin in allow_origins if origin != "*"]

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["GET", "POST", "OPTIONS"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(rooms.router, tags=["rooms"])
app.include_router(ops.router, tags=["ops"])
