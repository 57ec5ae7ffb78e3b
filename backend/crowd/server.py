from __future__ import annotations

import sys
from pathlib import Path

from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .game.models import GameSettings
from .game.orchestrator import GameOrchestrator
from .game.recorder import GameRecorder, MemoryRecorder
from .game.rooms import RoomRegistry
from .game.themes import TemplateThemeProvider, ThemeProvider
from .game.timers import Scheduler, SocketIOScheduler
from .realtime.handlers import register_socketio_handlers
from .realtime.transport import SocketIOTransport
from .routes.health import bp as health_bp
from .routes.rooms import bp as rooms_bp
from .routes.state import bp as state_bp


def _choose_async_mode(configured: str) -> str:
    if configured:
        return configured
    # Default choice:
    # - Windows: threading (eventlet has known compatibility issues on newer Python)
    # - Python >= 3.13: threading (safer default)
    # - Otherwise: eventlet
    if sys.platform.startswith("win") or sys.version_info >= (3, 13):
        return "threading"
    return "eventlet"


def create_app(
    config_class=Config,
    scheduler: Scheduler | None = None,
    theme_provider: ThemeProvider | None = None,
    recorder: GameRecorder | None = None,
) -> tuple[Flask, SocketIO]:
    dist_dir = Path(__file__).resolve().parents[2] / "frontend" / "dist"

    static_folder = str(dist_dir) if dist_dir.exists() else None
    static_url_path = "/" if dist_dir.exists() else None

    app = Flask(
        __name__,
        static_folder=static_folder,
        static_url_path=static_url_path,
    )
    app.config.from_object(config_class)

    if app.config.get("TRUST_PROXY_HEADERS", False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    CORS(app, resources={r"/api/*": {"origins": cors_origins}})

    socketio = SocketIO(
        app,
        cors_allowed_origins=cors_origins,
        async_mode=_choose_async_mode(app.config.get("SOCKETIO_ASYNC_MODE", "")),
    )

    settings = GameSettings.from_mapping(app.config)
    rooms = RoomRegistry(
        max_attempts=int(app.config.get("ROOM_CODE_ATTEMPTS", 50)),
        retention_hours=float(app.config.get("ROOM_RETENTION_HOURS", 24)),
    )
    orchestrator = GameOrchestrator(
        transport=SocketIOTransport(socketio),
        scheduler=scheduler or SocketIOScheduler(socketio),
        rooms=rooms,
        themes=theme_provider or TemplateThemeProvider(count=settings.theme_count),
        settings=settings,
        recorder=recorder or MemoryRecorder(),
    )
    orchestrator.open_room()
    app.extensions["crowd"] = orchestrator

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(rooms_bp, url_prefix="/api")
    app.register_blueprint(state_bp, url_prefix="/api")

    register_socketio_handlers(socketio, orchestrator)

    if dist_dir.exists():
        @app.get("/")
        def index():
            return send_from_directory(dist_dir, "index.html")

        @app.get("/<path:path>")
        def static_proxy(path: str):
            file_path = dist_dir / path
            if file_path.exists() and file_path.is_file():
                return send_from_directory(dist_dir, path)
            return send_from_directory(dist_dir, "index.html")

    return app, socketio
