"""
Caelex Compliance Core - Main Server

Wires the motor database into the compliance services and mounts the routers
under /api. Routes are organized in /routes/.
"""

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from contextlib import asynccontextmanager
import logging

from services.app_config import (
    AUDIT_LOG_ENABLED,
    DB_NAME,
    LOG_LEVEL,
    MONGO_URL,
    get_cors_origins,
)

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ==================== ROUTERS ====================
from routes import authorization, compliance

# ==================== SERVICES ====================
from services.audit import AuditLogger
from services.authorization_service import AuthorizationService
from services.compliance_scoring import ComplianceScoringService
from services.document_completeness import DocumentCompletenessService
from services.repository import ComplianceRepository
from services.workflow_engine import WorkflowConfigurationError

db = None
mongo_client = None
audit_logger = None


# ==================== LIFESPAN ====================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global db, mongo_client, audit_logger

    logger.info("Starting Caelex Compliance Core...")

    mongo_client = AsyncIOMotorClient(MONGO_URL)
    db = mongo_client[DB_NAME]

    repository = ComplianceRepository(db)
    audit_logger = AuditLogger(db, enabled=AUDIT_LOG_ENABLED)

    authorization.set_dependencies(
        AuthorizationService(repository, audit_logger),
        DocumentCompletenessService(repository),
    )
    compliance.set_dependencies(ComplianceScoringService(repository))

    await repository.create_indexes()

    logger.info("Caelex Compliance Core started (db=%s, audit=%s)", DB_NAME, AUDIT_LOG_ENABLED)

    yield

    logger.info("Shutting down Caelex Compliance Core...")
    await audit_logger.drain()
    if mongo_client:
        mongo_client.close()


# ==================== APP ====================
app = FastAPI(
    title="Caelex Compliance Core",
    description="EU Space Act authorization workflows and compliance scoring",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowConfigurationError)
async def workflow_configuration_error_handler(request: Request, exc: WorkflowConfigurationError):
    logger.error("Workflow configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Workflow configuration error"})


api_router = APIRouter(prefix="/api")
api_router.include_router(authorization.router)
api_router.include_router(compliance.router)


@api_router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "caelex-compliance-core"}


app.include_router(api_router)
