from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict


@dataclass
class DeployResult:
    success: bool
    message: str = ""


class Deployer(ABC):
    """Hands declarative text to whatever applies it (terraform, LocalStack, ...)."""

    @abstractmethod
    def deploy(self, text: str, credentials: Dict[str, str]) -> DeployResult:
        pass
