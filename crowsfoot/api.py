"""
crowsfoot API - FastAPI application

Thin HTTP wrapper around the compiler for editor front ends:
- Parse, analyze and validate declarative ER text
- Generate positioned diagrams
- Serialize canvas graphs back to text
- CORS configuration for local frontend development
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import __version__
from .analysis import LayoutStrategy, analyze
from .config.logging import get_logger, setup_logging
from .errors import EmptyInputError, ERSyntaxError, SerializationError
from .generator import generate
from .parser import parse
from .serializer import CanvasGraph, serialize
from .validation import validate_diagram, validation_summary

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup tasks."""
    setup_logging()
    logger.info("crowsfoot API %s ready", __version__)
    yield


# --- FastAPI App ---

app = FastAPI(
    title="crowsfoot API",
    description="Declarative Crow's-Foot ER diagram compiler",
    version=__version__,
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SourceRequest(BaseModel):
    text: str


class GenerateRequest(BaseModel):
    text: str
    strategy: Optional[LayoutStrategy] = None


def _parse_or_400(text: str):
    try:
        return parse(text)
    except ERSyntaxError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


# --- Compiler ---

@app.post("/api/parse")
async def parse_text(request: SourceRequest):
    """Parse text into an unpositioned diagram."""
    diagram = _parse_or_400(request.text)
    return {"success": True, "diagram": diagram.to_json_dict()}


@app.post("/api/analyze")
async def analyze_text(request: SourceRequest):
    """Classify the connectivity of a diagram."""
    diagram = _parse_or_400(request.text)
    return {"success": True, "analysis": analyze(diagram).to_dict()}


@app.post("/api/validate")
async def validate_text(request: SourceRequest):
    """Report structural issues in a diagram."""
    diagram = _parse_or_400(request.text)
    issues = validate_diagram(diagram)
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    }


@app.post("/api/generate")
async def generate_diagram(request: GenerateRequest):
    """Compile text into a positioned diagram."""
    try:
        result = generate(request.text, strategy=request.strategy)
    except ERSyntaxError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
    except EmptyInputError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    return {"success": True, **result.to_dict()}


@app.post("/api/serialize")
async def serialize_graph(graph: CanvasGraph):
    """Rebuild declarative text from a canvas graph."""
    try:
        text = serialize(graph)
    except SerializationError as e:
        raise HTTPException(status_code=422, detail={"message": str(e)})
    return {"success": True, "text": text}


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8765)
