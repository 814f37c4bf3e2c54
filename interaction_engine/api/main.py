"""
Medication Interaction Engine - FastAPI REST API
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime
import logging

from config import settings
from interaction_engine.core.interaction_checker import InteractionChecker, get_interaction_checker
from interaction_engine.core.normalizer import normalize
from interaction_engine.nlp.response_extractor import ResponseExtractor

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


# Pydantic models for API
class InteractionCheckRequest(BaseModel):
    candidate_medication: str = Field(..., description="Medication being prescribed")
    current_medications: List[str] = Field(default_factory=list)


class PairCheckRequest(BaseModel):
    medication1: str
    medication2: str


class ExtractRequest(BaseModel):
    text: str
    primary_medication: str
    candidate_medications: List[str] = Field(default_factory=list)


class InteractionResponse(BaseModel):
    severity: str
    description: str
    medications: List[str]
    evidence_level: str
    source: str


class InteractionCheckResponse(BaseModel):
    status: str
    interactions: List[InteractionResponse]
    failures: List[str]
    fallback_used: bool
    check_time_ms: float
    checked_at: str


class ExtractResponse(BaseModel):
    strategy: Optional[str]
    interactions: List[InteractionResponse]


class HealthCheckResponse(BaseModel):
    status: str
    version: str
    knowledge_base: Dict[str, Any]
    model_fallback_enabled: bool
    timestamp: str


# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    description="Medication-safety advisory engine: drug-drug interaction detection from a curated "
                "knowledge base, with a model-assisted fallback for uncovered pairs.",
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state
interaction_checker: Optional[InteractionChecker] = None
response_extractor = ResponseExtractor()


def get_checker() -> InteractionChecker:
    global interaction_checker
    if interaction_checker is None:
        interaction_checker = get_interaction_checker()
    return interaction_checker


@app.on_event("startup")
async def startup_event():
    """Build the knowledge base and checker before serving requests"""
    logger.info("Starting Medication Interaction Engine...")
    checker = get_checker()
    logger.info(f"Knowledge base ready: {checker.knowledge_base.get_statistics()}")


@app.on_event("shutdown")
async def shutdown_event():
    """Close the collaborator client"""
    logger.info("Shutting down Medication Interaction Engine...")
    if interaction_checker is not None:
        await interaction_checker.close()


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint"""
    return {
        "name": settings.API_TITLE,
        "version": settings.API_VERSION,
        "status": "operational",
        "docs": "/docs"
    }


@app.get("/health", response_model=HealthCheckResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    checker = get_checker()
    return HealthCheckResponse(
        status="healthy" if checker.knowledge_base.is_built else "initializing",
        version=settings.API_VERSION,
        knowledge_base=checker.knowledge_base.get_statistics(),
        model_fallback_enabled=checker.fallback is not None,
        timestamp=datetime.now().isoformat()
    )


@app.post("/interactions/check", response_model=InteractionCheckResponse, tags=["Interactions"])
async def check_interactions(request: InteractionCheckRequest):
    """
    Check a candidate medication against the patient's current medications.

    Always answers 200. ``status`` is "degraded" when part of the check could
    not run, in which case an empty list does not mean "no interactions".
    """
    result = await get_checker().check(request.candidate_medication, request.current_medications)
    return result.to_dict()


@app.post("/interactions/pair", response_model=List[InteractionResponse], tags=["Interactions"])
async def check_pair(request: PairCheckRequest):
    """
    Rule-based check for two specific medications.
    Returns empty list if no interaction is known.
    """
    matcher = get_checker().matcher
    risk = matcher.check_pair(request.medication1, request.medication2)
    return [risk.to_dict()] if risk else []


@app.post("/interactions/extract", response_model=ExtractResponse, tags=["Interactions"])
async def extract_interactions(request: ExtractRequest):
    """Run the response extractor on arbitrary text (diagnostics)"""
    outcome = response_extractor.extract_with_outcome(
        request.text, request.primary_medication, request.candidate_medications
    )
    return {
        "strategy": outcome.strategy,
        "interactions": [r.to_dict() for r in outcome.risks],
    }


@app.get("/knowledge-base/{drug}", tags=["Knowledge Base"])
async def get_drug_interactions(drug: str):
    """Known interactions for a drug, in both directions"""
    key = normalize(drug)
    if not key:
        raise HTTPException(status_code=400, detail="Drug name is empty")

    knowledge_base = get_checker().knowledge_base
    interactions = [
        {"drug": key, "interacts_with": edge.counterpart,
         "severity": edge.severity.value, "description": edge.description}
        for edge in knowledge_base.lookup_direct(key)
    ]
    interactions.extend(
        {"drug": key, "interacts_with": source,
         "severity": edge.severity.value, "description": edge.description}
        for source, edge in knowledge_base.lookup_reverse(key)
    )

    if not interactions:
        raise HTTPException(status_code=404, detail="No known interactions for this drug")
    return {"drug": key, "interactions": interactions}


@app.post("/admin/reload-knowledge-base", tags=["Admin"])
async def reload_knowledge_base(filepath: str):
    """Replace the knowledge base from a JSON, CSV or Excel dataset"""
    knowledge_base = get_checker().knowledge_base
    try:
        count = knowledge_base.reload_from_file(filepath)
    except Exception as e:
        logger.error(f"Failed to reload knowledge base: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "status": "success",
        "interactions_loaded": count,
        "statistics": knowledge_base.get_statistics()
    }


@app.get("/statistics", tags=["Admin"])
async def get_statistics():
    """Get knowledge base and service statistics"""
    checker = get_checker()
    return {
        "knowledge_base": checker.knowledge_base.get_statistics(),
        "service": {
            "model_fallback_enabled": checker.fallback is not None,
            "fallback_min_rule_hits": checker.min_rule_hits,
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
