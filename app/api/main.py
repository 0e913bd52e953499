from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes.growth import router as growth_router
from app.config import load_config, resolve_path
from app.db.session import init_db, make_session_factory
from app.services.growth_service import GrowthAssessmentService
from app.services.growth_store import SqlGrowthRecordStore
from growth.errors import GrowthAssessmentError
from growth.who_lms import load_who_reference


logger = logging.getLogger(__name__)


def build_service(cfg: dict) -> Optional[GrowthAssessmentService]:
    """Wire the reference repository and the SQL store from config.

    Returns None when the WHO reference cannot be loaded; the growth
    endpoints then answer 503 while the rest of the API stays up.
    """
    session_factory = make_session_factory(cfg["database"]["url"])
    init_db(session_factory)
    store = SqlGrowthRecordStore(session_factory, history_limit=int(cfg["growth"]["history_limit"]))

    try:
        reference = load_who_reference(resolve_path(cfg["paths"]["who_lms_dir"]))
    except GrowthAssessmentError as e:
        logger.warning("WHO reference not loaded: %s", e)
        return None

    return GrowthAssessmentService(
        reference=reference,
        store=store,
        trend_threshold=float(cfg["growth"]["trend_threshold"]),
    )


def create_app(service: Optional[GrowthAssessmentService] = None, cfg: Optional[dict] = None) -> FastAPI:
    app = FastAPI(title="Child Growth Assessment API", version="0.1.0")
    app.state.service = service
    app.include_router(growth_router)

    @app.on_event("startup")
    def _startup() -> None:
        """Load config, WHO reference and database once, unless a service was injected."""
        if app.state.service is not None:
            return
        conf = cfg or load_config()
        logging.basicConfig(
            level=conf["logging"]["level"],
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        app.state.service = build_service(conf)

    @app.exception_handler(GrowthAssessmentError)
    async def _growth_error(request: Request, exc: GrowthAssessmentError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": type(exc).__name__, "detail": str(exc)})

    @app.get("/health")
    def health():
        return {"status": "ok", "reference_loaded": app.state.service is not None}

    return app


app = create_app()
