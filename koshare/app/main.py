"""Ko Share check-in backend."""

import contextlib
import os
from collections.abc import AsyncGenerator

import fastapi
import fastapi.middleware.cors
import uvicorn

import common.app

from . import database, routes


@contextlib.asynccontextmanager
async def lifespan(app: fastapi.FastAPI) -> AsyncGenerator[None, None]:
    """Initialize the database on startup."""
    database.create_db_and_tables()
    yield


app = common.app.create_app('Ko Share', lifespan=lifespan)

# The browser client is served from a different origin than the API.
app.add_middleware(
    fastapi.middleware.cors.CORSMiddleware,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=['GET', 'POST'],
    allow_headers=['*'],
)

app.include_router(routes.router)


if __name__ == '__main__':
    uvicorn.run(app, host='0.0.0.0', port=int(os.environ.get('PORT', '8000')))
