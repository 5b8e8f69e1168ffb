import logging
from contextlib import asynccontextmanager
from functools import partial

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from google.cloud import firestore

import config
import errors
import sendgridemail
from services.mail_queue import MailQueue

# Import routers
from routers import comments, users

logger = logging.getLogger('uvicorn.error')


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: Initializing resources...")
    settings = config.load_settings()
    app.state.settings = settings

    try:
        app.state.db = firestore.AsyncClient(project=settings.firestore_project)
        logger.info("Firestore Async client initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize Firestore Async client: {e}")
        app.state.db = None

    app.state.mail_queue = MailQueue(partial(sendgridemail.send_email, settings=settings))
    app.state.mail_queue.start()

    yield
    logger.info("Application shutdown: Cleaning up resources...")
    await app.state.mail_queue.stop()
    if hasattr(app.state, 'db') and app.state.db:
        try:
            await app.state.db.close() # Close the async client
            logger.info("Firestore Async client closed.")
        except Exception as e:
            logger.error(f"Error closing Firestore client: {e}")


app = FastAPI(lifespan=lifespan)
app.include_router(users.router)
app.include_router(comments.router)

app.add_exception_handler(errors.AppError, errors.app_error_handler)
app.add_exception_handler(RequestValidationError, errors.request_validation_handler)
app.add_exception_handler(StarletteHTTPException, errors.http_exception_handler)
app.add_exception_handler(Exception, errors.unhandled_error_handler)

app.add_middleware(
    TrustedHostMiddleware, allowed_hosts=config.allowed_hosts()
)
