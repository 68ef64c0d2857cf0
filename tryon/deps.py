# tryon/deps.py
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware

from .compose import CompositionOrchestrator
from .config import Settings
from .search import SearchNormalizer


def add_cors(app, origins=None):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins or ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_search(request: Request) -> SearchNormalizer:
    return request.app.state.search


def get_orchestrator(request: Request) -> CompositionOrchestrator:
    return request.app.state.orchestrator


def get_http_client(request: Request):
    return request.app.state.http_client
