from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .routers import files

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse({'detail': 'Internal server error. Please try again.'}, status_code=500)


@app.on_event('startup')
def startup():
    if settings.sandbox_root:
        Path(settings.sandbox_root).mkdir(parents=True, exist_ok=True)
        logger.info('File operations confined to %s', files.ops.root)
    else:
        logger.warning('No sandbox root configured; file operations are unrestricted')


@app.get('/healthz')
def healthz():
    return {'ok': True, 'sandboxed': files.ops.root is not None}


app.include_router(files.router)
