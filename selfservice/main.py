from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from selfservice.api.routes import router
from selfservice.api.admin_routes import router as admin_router
from selfservice.core.errors import SelfServiceError
from selfservice.observability.logging import log
from selfservice.settings import settings

app = FastAPI(title="Self-Service API")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.exception_handler(SelfServiceError)
async def selfservice_exception_handler(request: Request, exc: SelfServiceError):
    # Invalid tokens and unknown flows end the exchange; stage errors never get here
    log(event="request_rejected", path=request.url.path, errorType=type(exc).__name__, error=exc.message)
    return JSONResponse(
        status_code=exc.code,
        content={"status": "error", **exc.to_dict()},
    )
