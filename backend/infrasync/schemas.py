from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List


class PortModel(BaseModel):
    node: str
    side: str = "right"


class NodeModel(BaseModel):
    id: Optional[str] = None
    kind: str
    label: Optional[str] = None
    x: float = 0.0  # network: top-left corner, other kinds: center
    y: float = 0.0
    w: Optional[float] = None
    h: Optional[float] = None
    parentId: Optional[str] = None  # output only, recomputed from geometry
    resourceName: Optional[str] = None


class EdgeModel(BaseModel):
    id: Optional[str] = None
    source: PortModel
    target: PortModel
    style: str = "solid"


class GraphPayload(BaseModel):
    nodes: List[NodeModel] = []
    edges: List[EdgeModel] = []


class SynthesizeRequest(BaseModel):
    graph: GraphPayload
    suffix_seed: Optional[str] = None  # fixed seed instead of the configured strategy


class SynthesizeResponse(BaseModel):
    status: str
    ir: Dict[str, Any]
    text: str
    bindings: Dict[str, str] = {}
    fallbacks: List[Dict[str, Any]] = []


class EmitRequest(BaseModel):
    """IR JSON: {variables, providers, data, resources}"""
    ir: Dict[str, Any]


class TextRequest(BaseModel):
    text: str


class TextResponse(BaseModel):
    text: str


class ParseResponse(BaseModel):
    ir: Dict[str, Any]


class ReconstructResponse(BaseModel):
    graph: Dict[str, Any]
    ir: Dict[str, Any]


class LocalStackRequest(BaseModel):
    text: str
    endpoint: Optional[str] = None
    region: Optional[str] = None


class ErrorDetail(BaseModel):
    error: str
    message: str
    line: Optional[int] = None
    identity: List[str] = Field(default_factory=list)
