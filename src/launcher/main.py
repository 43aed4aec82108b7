"""FastAPI application for the Nova framework launcher."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from launcher.api.routes import router
from launcher.models.config import load_config
from launcher.services.launcher import PackageInstallerLauncher
from launcher.services.reporter import HttpProgressSink
from launcher.services.state_machine import InstallStateMachine
from launcher.utils.logging import setup_logger

CONFIG_ENV_VAR = "LAUNCHER_CONFIG"
DEFAULT_CONFIG_PATH = "./launcher.json"


def _config_path() -> str:
    return os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown hooks.

    Startup:
    - Load configuration
    - Initialize logger
    - Build the state machine (with HTTP sink if report_url is set) and launcher
    - Start installation immediately when auto_start is enabled

    Shutdown:
    - Close the active run and flush pending progress reports
    """
    config = load_config(_config_path())
    logger = setup_logger("launcher", config.log_file, level=logging.INFO)
    logger.info("Nova launcher starting up...")

    sink = HttpProgressSink(config.report_url) if config.report_url else None
    state_machine = InstallStateMachine(
        sinks=[sink] if sink else None,
        progress_ranges=config.progress_ranges,
    )
    launcher = PackageInstallerLauncher(config, state_machine=state_machine)
    app.state.launcher = launcher

    if config.auto_start:
        started = await launcher.execute_installation()
        if not started:
            logger.info("Framework already installed, nothing to do")

    logger.info(f"Nova launcher ready on port {config.port}")

    yield

    # Shutdown
    logger.info("Nova launcher shutting down...")
    launcher.close()
    if sink is not None:
        await sink.drain()
        await sink.aclose()


app = FastAPI(
    title="Nova Launcher",
    description="Bootstraps Nova framework packages into an engine project",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "nova-launcher", "version": "1.0.0"}


def main():
    """Main entry point for running the server."""
    config = load_config(_config_path())
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
        access_log=True,
    )


if __name__ == "__main__":
    main()
