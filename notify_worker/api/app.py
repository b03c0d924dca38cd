"""HTTP trigger for the dispatch worker.

OPTIONS is a CORS preflight no-op. Every other method on ``/`` runs one
invocation (promotion, then one consumer cycle) and reports its counts.
"""

import hmac
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from notify_worker import __version__
from notify_worker.config.environment import EnvironmentConfig
from notify_worker.logging import get_logger
from notify_worker.worker.invocation import DispatchWorker

logger = get_logger(__name__, component="api")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

TRIGGER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def is_authorized(
    authorization: Optional[str],
    cron_secret: Optional[str],
    env_config: EnvironmentConfig,
) -> bool:
    """Check the trigger credentials.

    Accepts a matching X-Cron-Secret, or an Authorization header. When
    WORKER_SERVICE_TOKEN is configured the header must carry that token as a
    bearer credential; otherwise any Authorization header is accepted.
    """
    if cron_secret and env_config.cron_secret:
        if hmac.compare_digest(cron_secret, env_config.cron_secret):
            return True

    if not authorization:
        return False

    if env_config.worker_service_token is None:
        return True

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return hmac.compare_digest(token.strip(), env_config.worker_service_token)


def create_app(worker: DispatchWorker, env_config: EnvironmentConfig) -> FastAPI:
    """Build the trigger application around a worker."""
    app = FastAPI(title="Notification Dispatch Worker", version=__version__)

    @app.get("/health")
    def health() -> dict:
        return {"ok": True, "service": "notification-dispatch-worker", "version": __version__}

    @app.api_route("/", methods=TRIGGER_METHODS)
    def trigger(request: Request):
        if request.method == "OPTIONS":
            return PlainTextResponse("ok", headers=CORS_HEADERS)

        if not is_authorized(
            request.headers.get("authorization"),
            request.headers.get("x-cron-secret"),
            env_config,
        ):
            logger.warning(
                "Rejected unauthorized trigger",
                extra={"event": "api.trigger.unauthorized", "method": request.method},
            )
            return JSONResponse({"error": "Unauthorized"}, status_code=401, headers=CORS_HEADERS)

        try:
            result = worker.invoke()
        except Exception as e:
            logger.error(
                f"Trigger invocation failed: {e}",
                extra={"event": "api.trigger.failed", "error_type": type(e).__name__},
            )
            return JSONResponse(
                {"success": False, "error": str(e) or type(e).__name__},
                status_code=500,
                headers=CORS_HEADERS,
            )

        return JSONResponse(result.to_response(), headers=CORS_HEADERS)

    return app
