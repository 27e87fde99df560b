from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
import json
import logging

from stackforge.app import synth_stack
from stackforge.config import load_settings
from stackforge.dependency_resolver import build_graph
from stackforge.errors import MissingEnvironmentError, StackError
from stackforge.loader import load_stack
from stackforge.renderer import normalize_format

logger = logging.getLogger(__name__)

app = FastAPI(title="StackForge")

# CORS middleware to allow browser clients to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class StackDefinition(BaseModel):
    stack: str = "stack"
    env: List[str] = Field(default_factory=list)
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    data: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    resources: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    outputs: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class SynthRequest(BaseModel):
    definition: StackDefinition
    # Values for the definition's `env` names; the server environment is never read
    environment: Dict[str, str] = Field(default_factory=dict)
    format: str = "json"
    strict: Optional[bool] = None


class GraphRequest(BaseModel):
    definition: StackDefinition
    environment: Dict[str, str] = Field(default_factory=dict)


def _load(definition: StackDefinition, environment: Dict[str, str]):
    return load_stack(definition.model_dump(), environment)


def _raise_for(e: StackError):
    status = 400 if isinstance(e, MissingEnvironmentError) else 422
    raise HTTPException(status_code=status, detail=e.context())


@app.get("/")
async def root():
    return {"message": "StackForge API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/synth")
async def synth(request: SynthRequest):
    strict = load_settings().strict if request.strict is None else request.strict
    try:
        format = normalize_format(request.format)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        stack = _load(request.definition, request.environment)
        result = synth_stack(stack, strict=strict, format=format)
    except StackError as e:
        _raise_for(e)

    logger.info("Synthesized %s (%d nodes)", result.stack, len(result.graph.nodes))
    if format == "json":
        plan = json.loads(result.plan)
    else:
        plan = result.plan.decode("utf-8")

    return {
        "stack": result.stack,
        "plan": plan,
        "order": list(result.graph.order),
        "edges": [list(e) for e in result.graph.edge_list()],
    }


@app.post("/graph")
async def graph(request: GraphRequest):
    try:
        reference_graph = build_graph(_load(request.definition, request.environment))
    except StackError as e:
        _raise_for(e)
    return reference_graph.to_dict()
