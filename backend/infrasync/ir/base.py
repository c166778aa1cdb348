from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Tuple, Union

from .errors import ValidationError
from .validation import ValidationResult


# str | int | float | bool | None | list | dict, nested
Value = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]

RESOURCE = "resource"
DATA = "data"
PROVIDER = "provider"
VARIABLE = "variable"

# Emission order
BLOCK_KINDS = (VARIABLE, PROVIDER, DATA, RESOURCE)

# Kinds labelled `<kind> "<type>" "<name>"`; the others take a single label
TWO_LABEL_KINDS = {RESOURCE, DATA}


@dataclass
class Block:
    """A nested `name { ... }` block inside a resource body."""
    name: str
    body: Dict[str, Any] = field(default_factory=dict)
    blocks: List["Block"] = field(default_factory=list)
    # `dynamic "x" {` and similar labelled nested blocks
    labels: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {"name": self.name, "body": self.body}
        if self.blocks:
            data["blocks"] = [b.to_dict() for b in self.blocks]
        if self.labels:
            data["labels"] = list(self.labels)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Block":
        return cls(
            name=data.get("name", ""),
            body=dict(data.get("body") or {}),
            blocks=[cls.from_dict(b) for b in data.get("blocks") or []],
            labels=list(data.get("labels") or []),
        )


@dataclass
class Resource:
    """
    One top-level declaration.

    provider/variable blocks carry their only label in `type_name`
    and leave `instance_name` empty.
    """
    kind: str
    type_name: str
    instance_name: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)
    blocks: List[Block] = field(default_factory=list)

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.kind, self.type_name, self.instance_name)

    @property
    def address(self) -> str:
        if self.kind == RESOURCE:
            return f"{self.type_name}.{self.instance_name}"
        if self.kind == DATA:
            return f"data.{self.type_name}.{self.instance_name}"
        return f"{self.kind}.{self.type_name}"

    def ref(self, attribute: str) -> str:
        """Interpolation string pointing at one of this resource's attributes."""
        return "${" + f"{self.address}.{attribute}" + "}"

    def blocks_named(self, name: str) -> List[Block]:
        return [b for b in self.blocks if b.name == name]

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind,
            "type": self.type_name,
            "name": self.instance_name,
            "properties": self.properties,
            "blocks": [b.to_dict() for b in self.blocks],
        }
        return data

    @classmethod
    def from_dict(cls, data: dict, kind: str = RESOURCE) -> "Resource":
        kind = data.get("kind", kind)
        if kind in TWO_LABEL_KINDS:
            type_name = data.get("type", "")
            instance_name = data.get("name", "")
        else:
            # {"name": "aws"} is the natural shape for providers/variables
            type_name = data.get("type") or data.get("name", "")
            instance_name = ""
        return cls(
            kind=kind,
            type_name=type_name,
            instance_name=instance_name,
            properties=dict(data.get("properties") or {}),
            blocks=[Block.from_dict(b) for b in data.get("blocks") or []],
        )


@dataclass
class InfraIR:
    """The format-agnostic list of declarations, grouped by kind."""
    variables: List[Resource] = field(default_factory=list)
    providers: List[Resource] = field(default_factory=list)
    data: List[Resource] = field(default_factory=list)
    resources: List[Resource] = field(default_factory=list)

    def group(self, kind: str) -> List[Resource]:
        return {
            VARIABLE: self.variables,
            PROVIDER: self.providers,
            DATA: self.data,
            RESOURCE: self.resources,
        }[kind]

    def add(self, resource: Resource) -> Resource:
        self.group(resource.kind).append(resource)
        return resource

    def __iter__(self) -> Iterator[Resource]:
        for kind in BLOCK_KINDS:
            yield from self.group(kind)

    def __len__(self) -> int:
        return sum(len(self.group(kind)) for kind in BLOCK_KINDS)

    def find(self, type_name: str, instance_name: str = None) -> List[Resource]:
        return [
            r for r in self
            if r.type_name == type_name
            and (instance_name is None or r.instance_name == instance_name)
        ]

    def get(self, type_name: str, instance_name: str):
        for r in self.resources:
            if r.type_name == type_name and r.instance_name == instance_name:
                return r
        return None

    def identities(self) -> List[Tuple[str, str, str]]:
        return [r.identity for r in self]

    def to_dict(self) -> dict:
        return {
            "variables": [r.to_dict() for r in self.variables],
            "providers": [r.to_dict() for r in self.providers],
            "data": [r.to_dict() for r in self.data],
            "resources": [r.to_dict() for r in self.resources],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InfraIR":
        return cls(
            variables=[Resource.from_dict(r, VARIABLE) for r in data.get("variables") or []],
            providers=[Resource.from_dict(r, PROVIDER) for r in data.get("providers") or []],
            data=[Resource.from_dict(r, DATA) for r in data.get("data") or []],
            resources=[Resource.from_dict(r, RESOURCE) for r in data.get("resources") or []],
        )

    def validate(self) -> ValidationResult:
        errors = []
        seen = set()

        for resource in self:
            label = resource.address
            if not resource.type_name:
                errors.append(
                    ValidationError(
                        level="ir",
                        message="type must not be empty",
                        object_id=label,
                    )
                )
            if resource.kind in TWO_LABEL_KINDS and not resource.instance_name:
                errors.append(
                    ValidationError(
                        level="ir",
                        message="instance name must not be empty",
                        object_id=label,
                    )
                )
            if resource.identity in seen:
                errors.append(
                    ValidationError(
                        level="ir",
                        message="duplicate identity",
                        object_id=label,
                    )
                )
            seen.add(resource.identity)

        return ValidationResult.from_errors(errors)
