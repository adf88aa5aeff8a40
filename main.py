import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import config
import database
from mailer import Mailer
from responses import APIError, send_error
from routes import routers
from storage import MediaStorage
from tokens import TokenService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = app.state.db
    if db is None:
        logger.warning("DATABASE_URL not set; database endpoints will report it")
    else:
        # Failing to reach the database at startup is fatal.
        database.ping(db)
        database.ensure_indexes(db)
        logger.info("Connected to database %s", db.name)
    yield
    if db is not None:
        db.client.close()


def create_app(
    db: Optional[Database] = database.db,
    storage: Optional[MediaStorage] = None,
    mailer: Optional[Mailer] = None,
    tokens: Optional[TokenService] = None,
) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title="Campus Quest API", version="1.0.0", lifespan=lifespan)
    app.state.db = db
    app.state.storage = storage or MediaStorage.from_env()
    app.state.mailer = mailer or Mailer.from_env()
    app.state.tokens = tokens or TokenService(config.ACCESS_TOKEN_SECRET)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.FRONTEND_URL, *config.CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return send_error(exc.message, exc.jwt_token, request.app.state.tokens, exc.status_code)

    @app.get("/")
    def read_root():
        return {"message": "Campus Quest API ready"}

    @app.get("/test")
    def test_database():
        db = app.state.db
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
            "database_name": config.DATABASE_NAME,
            "storage": "✅ Set" if config.R2_ENDPOINT else "❌ Not Set",
            "email": "✅ Set" if config.RESEND_API_KEY else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            if db is not None:
                response["database"] = "✅ Available"
                response["connection_status"] = "Connected"
                try:
                    response["collections"] = db.list_collection_names()[:10]
                    response["database"] = "✅ Connected & Working"
                except Exception as e:
                    response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
            else:
                response["database"] = "⚠️ Available but not initialized"
        except Exception as e:
            response["database"] = f"❌ Error: {str(e)[:50]}"
        return response

    for router in routers:
        app.include_router(router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
