import logging

from fastapi import APIRouter, HTTPException

from infrasync import config
from infrasync.schemas import (
    EmitRequest,
    ErrorDetail,
    LocalStackRequest,
    ParseResponse,
    ReconstructResponse,
    SynthesizeRequest,
    SynthesizeResponse,
    TextRequest,
    TextResponse,
)
from infrasync.api.serializers import serialize
from infrasync.compiler.localstack import ensure_localstack
from infrasync.compiler.render_hcl import render_hcl
from infrasync.compiler.synthesizer import ResourceSynthesizer
from infrasync.dsl.hcl_parser import parse_hcl
from infrasync.graph.serializers import graph_from_dict, graph_to_dict
from infrasync.ir.base import InfraIR
from infrasync.ir.errors import MalformedSyntax, NameCollision
from infrasync.ir.naming import SeededSuffix
from infrasync.reconstruct.heuristics import HeuristicReconstructor

logger = logging.getLogger(__name__)

router = APIRouter()


def _malformed(e: MalformedSyntax) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=ErrorDetail(error="malformed_syntax", message=e.message, line=e.line).model_dump(),
    )


def _collision(e: NameCollision) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail=ErrorDetail(
            error="name_collision",
            message=str(e),
            identity=list(e.identity),
        ).model_dump(),
    )


def _parse_text(text: str) -> InfraIR:
    try:
        return parse_hcl(text)
    except MalformedSyntax as e:
        logger.info("[API] rejected text: %s", e)
        raise _malformed(e)


@router.get("/health")
def health():
    return {"status": "ok"}


# ============================
# Graph -> text
# ============================

@router.post("/synthesize", response_model=SynthesizeResponse)
def synthesize_graph(request: SynthesizeRequest):
    try:
        graph = graph_from_dict(request.graph.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(
            status_code=422,
            detail=ErrorDetail(error="invalid_graph", message=str(e)).model_dump(),
        )

    strategy = SeededSuffix(request.suffix_seed) if request.suffix_seed is not None else None
    try:
        result = ResourceSynthesizer(suffix_strategy=strategy).run(graph)
    except NameCollision as e:
        logger.warning("[API] synthesis failed: %s", e)
        raise _collision(e)

    return SynthesizeResponse(
        status="warning" if result.fallbacks else "success",
        ir=result.ir.to_dict(),
        text=render_hcl(result.ir),
        bindings=result.bindings,
        fallbacks=serialize(result.fallbacks),
    )


@router.post("/emit", response_model=TextResponse)
def emit(request: EmitRequest):
    try:
        ir = InfraIR.from_dict(request.ir)
    except (AttributeError, TypeError, ValueError) as e:
        logger.info("[API] rejected IR payload: %s", e)
        raise HTTPException(
            status_code=422,
            detail=ErrorDetail(error="invalid_ir", message=f"malformed IR: {e}").model_dump(),
        )

    validation = ir.validate()
    if not validation.is_valid:
        raise HTTPException(
            status_code=422,
            detail=ErrorDetail(
                error="invalid_ir",
                message="; ".join(validation.messages()),
            ).model_dump(),
        )
    return TextResponse(text=render_hcl(ir))


# ============================
# Text -> IR / graph
# ============================

@router.post("/parse", response_model=ParseResponse)
def parse(request: TextRequest):
    return ParseResponse(ir=_parse_text(request.text).to_dict())


@router.post("/reconstruct", response_model=ReconstructResponse)
def reconstruct(request: TextRequest):
    ir = _parse_text(request.text)
    graph = HeuristicReconstructor().reconstruct(ir)
    return ReconstructResponse(graph=graph_to_dict(graph), ir=ir.to_dict())


@router.post("/localstack", response_model=TextResponse)
def localstack(request: LocalStackRequest):
    try:
        text = ensure_localstack(
            request.text,
            endpoint=request.endpoint or config.LOCALSTACK_ENDPOINT,
            region=request.region or config.INFRASYNC_REGION,
        )
    except MalformedSyntax as e:
        raise _malformed(e)
    return TextResponse(text=text)
