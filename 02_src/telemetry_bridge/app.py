"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .config import BackendSettings
from .correlation import TelemetryCorrelator
from .dependencies import DependencyService
from .logging_config import get_logger
from .search import ISearchClient, ISpanRepository, SearchClient, SpanRepository
from .traces import TraceAnalyzer

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def traces(self) -> TraceAnalyzer:
        ...

    @property
    def dependencies(self) -> DependencyService:
        ...

    @property
    def correlator(self) -> TelemetryCorrelator:
        ...

    async def backend_available(self) -> bool:
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: BackendSettings | None = None,
        search_client: ISearchClient | None = None,
    ):
        self._settings = settings
        self._injected_client = search_client

        # Components (will be initialized in start())
        self._client: ISearchClient | None = None
        self._repository: ISpanRepository | None = None
        self._traces: TraceAnalyzer | None = None
        self._dependencies: DependencyService | None = None
        self._correlator: TelemetryCorrelator | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        if self._client is not None:
            return
        logger.info("Starting application")

        if self._settings is None:
            self._settings = BackendSettings.from_env()

        # 1. Search client (no dependencies)
        self._client = self._injected_client or SearchClient(self._settings)
        logger.info(
            "Search client initialized",
            extra={"context": {"url": self._settings.url}},
        )

        # 2. Repository (depends on the client)
        self._repository = SpanRepository(self._client, self._settings)

        # 3. Entry points (depend on the repository)
        self._traces = TraceAnalyzer(self._repository)
        self._dependencies = DependencyService(self._repository)
        self._correlator = TelemetryCorrelator(
            self._repository,
            trace_analyzer=self._traces,
            dependency_service=self._dependencies,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._correlator = None
        self._dependencies = None
        self._traces = None
        self._repository = None
        # Injected clients are owned by the caller.
        if self._client is not None and self._injected_client is None:
            await self._client.close()
        self._client = None
        logger.info("Application stopped")

    def _require(self, component):
        if component is None:
            raise RuntimeError("Application not started")
        return component

    @property
    def traces(self) -> TraceAnalyzer:
        return self._require(self._traces)

    @property
    def dependencies(self) -> DependencyService:
        return self._require(self._dependencies)

    @property
    def correlator(self) -> TelemetryCorrelator:
        return self._require(self._correlator)

    async def backend_available(self) -> bool:
        return await self._require(self._client).ping()
