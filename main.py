"""Main application entry point for the FlashBot arbitrage engine"""

import asyncio
import signal
import sys
from typing import Optional

import structlog
import uvicorn
from dotenv import load_dotenv

from flashbot.api.app import create_app
from flashbot.config.models import Settings
from flashbot.database.manager import DatabaseManager
from flashbot.database.memory import InMemoryRepository
from flashbot.database.repository import Repository
from flashbot.engine import ArbitrageEngine
from flashbot.monitoring.metrics import start_metrics_server
from flashbot.services.scheduler import PeriodicScheduler
from flashbot.sources.quote_source import CoinGeckoQuoteSource
from flashbot.utils.logging import setup_logging

# Load environment variables
load_dotenv()

logger = structlog.get_logger()


class Application:
    """Main application orchestrator"""

    def __init__(self):
        """Initialize application components"""
        self.settings: Optional[Settings] = None
        self.repository: Optional[Repository] = None
        self.engine: Optional[ArbitrageEngine] = None
        self.scheduler: Optional[PeriodicScheduler] = None
        self.expiry_scheduler: Optional[PeriodicScheduler] = None

        # FastAPI app
        self.app = None

        # Shutdown flag
        self._shutdown_event = asyncio.Event()

        self._logger = logger.bind(component="application")

    async def initialize(self) -> None:
        """Initialize all application components"""
        try:
            # Load settings from environment variables
            self.settings = Settings()
            setup_logging(self.settings.log_level)
            self._logger.info("application_initializing", log_level=self.settings.log_level)

            # Storage: PostgreSQL when configured, otherwise in-process
            if self.settings.database_url:
                self._logger.info(
                    "initializing_database",
                    database_url=self.settings.database_url.split("@")[-1],
                )
                db_manager = DatabaseManager(self.settings.database_url)
                await db_manager.connect()
                await db_manager.initialize_schema()
                self.repository = db_manager
            else:
                self._logger.info("using_in_memory_repository")
                self.repository = InMemoryRepository()

            engine_config = self.settings.get_engine_config()
            self.engine = ArbitrageEngine(
                repository=self.repository,
                quote_source=CoinGeckoQuoteSource(self.settings.get_quote_source_config()),
                config=engine_config,
            )
            await self.engine.initialize_default_data()
            await self.engine.check_configuration()

            self.scheduler = PeriodicScheduler(
                self.engine.trigger_detection_cycle,
                interval_seconds=engine_config.detection_interval_seconds,
            )
            self.expiry_scheduler = PeriodicScheduler(
                self.engine.expire_opportunities,
                interval_seconds=engine_config.expiry_interval_seconds,
                name="expiry",
            )

            self.app = create_app(settings=self.settings, engine=self.engine)

            self._logger.info("application_initialized")

        except Exception as e:
            self._logger.error(
                "application_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def start(self) -> None:
        """Start background services"""
        self._logger.info("application_starting")

        await self.scheduler.start()
        await self.expiry_scheduler.start()

        if self.settings.prometheus_port:
            self._logger.info("starting_metrics_server", port=self.settings.prometheus_port)
            start_metrics_server(port=self.settings.prometheus_port)

        self._logger.info("application_started")

    async def stop(self) -> None:
        """Stop all application components gracefully"""
        self._logger.info("application_stopping")

        try:
            if self.scheduler:
                await self.scheduler.stop()
            if self.expiry_scheduler:
                await self.expiry_scheduler.stop()

            if self.engine:
                await self.engine.close()

            if isinstance(self.repository, DatabaseManager):
                self._logger.info("closing_database_connection")
                await self.repository.disconnect()

            self._logger.info("application_stopped")

        except Exception as e:
            self._logger.error(
                "application_stop_error",
                error=str(e),
                error_type=type(e).__name__,
            )

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown"""
        def signal_handler(signum, frame):
            """Handle shutdown signals"""
            self._logger.info(
                "shutdown_signal_received",
                signal=signal.Signals(signum).name,
            )
            self._shutdown_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

    async def wait_for_shutdown(self) -> None:
        """Wait for shutdown signal"""
        await self._shutdown_event.wait()


async def main() -> None:
    """Main application entry point"""
    app = Application()

    try:
        await app.initialize()
        await app.start()

        config = uvicorn.Config(
            app.app,
            host=app.settings.api_host,
            port=app.settings.api_port,
            log_level=app.settings.log_level.lower(),
            access_log=True,
        )
        server = uvicorn.Server(config)
        app.setup_signal_handlers()

        server_task = asyncio.create_task(server.serve())
        shutdown_task = asyncio.create_task(app.wait_for_shutdown())
        logger.info(
            "uvicorn_server_started",
            host=app.settings.api_host,
            port=app.settings.api_port,
        )

        # uvicorn may take over SIGINT/SIGTERM while serving and exit on its own
        await asyncio.wait({server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        logger.info("shutting_down_uvicorn_server")
        server.should_exit = True
        await server_task
        shutdown_task.cancel()

        await app.stop()
        logger.info("application_shutdown_complete")

    except KeyboardInterrupt:
        logger.info("keyboard_interrupt_received")
        await app.stop()
    except Exception as e:
        logger.error(
            "application_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        await app.stop()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
