from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cipherdocs.api.http import documents_router, events_router, health_router, principals_router
from cipherdocs.api.ws.events import ConnectionManager, router as websocket_router
from cipherdocs.core.config import Settings, settings as default_settings
from cipherdocs.core.db import create_engine, create_session_factory, create_tables
from cipherdocs.db.repositories.registry_repository import RegistryPersistence
from cipherdocs.domains.registry.errors import RegistryError
from cipherdocs.domains.registry.services import RegistryService

logger = logging.getLogger(__name__)

# Категория ошибки реестра -> HTTP статус
ERROR_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "authorization": status.HTTP_403_FORBIDDEN,
    "validation": 422,
    "state_conflict": status.HTTP_409_CONFLICT,
}


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    """Структурированный ответ для ошибок реестра"""
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.category, status.HTTP_400_BAD_REQUEST),
        content=exc.to_dict(),
    )


def create_app(
    app_settings: Optional[Settings] = None,
    registry: Optional[RegistryService] = None,
) -> FastAPI:
    """Сборка приложения. Готовый registry отключает загрузку из БД"""
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        app.state.persistence = None

        if registry is not None:
            app.state.registry = registry
        else:
            engine = create_engine(app_settings.database_url)
            if engine is None:
                app.state.registry = RegistryService(
                    max_name_length=app_settings.max_name_length,
                    event_log_size=app_settings.event_log_size,
                )
                logger.info("Registry runs in memory, no database configured")
            else:
                await create_tables(engine)
                persistence = RegistryPersistence(create_session_factory(engine))
                app.state.registry = await persistence.load_service(
                    max_name_length=app_settings.max_name_length,
                    event_log_size=app_settings.event_log_size,
                )
                app.state.persistence = persistence

        connections: ConnectionManager = app.state.connections
        connections.bind_loop(asyncio.get_running_loop())
        app.state.registry.subscribe(connections.on_event)

        try:
            yield
        finally:
            app.state.registry.unsubscribe(connections.on_event)
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title="CipherDocs",
        description="Registry of encrypted documents with owner-controlled edit access",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.connections = ConnectionManager()

    # Настройка CORS для работы с frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # В продакшене указать конкретные домены
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RegistryError, registry_error_handler)

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(principals_router)
    app.include_router(events_router)
    app.include_router(websocket_router)

    return app


logging.basicConfig(
    level=default_settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
