"""Interface for region detector backends."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping
import numpy as np
from ..core.entities import Region


class RegionBackend(ABC):
    """Finds candidate text or object regions in a BGR image.

    Implementations return boxes in normalized [0, 1] coordinates relative to
    the image they were given, so callers never depend on the model's input
    resolution.
    """

    def __init__(self, config: Mapping[str, Any]):
        self.config = config
        self.weights = None
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @abstractmethod
    def load(self, weights: str) -> None:
        """Load model weights. Raises ModelError on failure."""

    @abstractmethod
    def detect_regions(self, image: np.ndarray, **overrides) -> List[Region]:
        ...

    def info(self) -> Dict[str, Any]:
        return {'loaded': self._loaded, 'weights': self.weights}

    def unload(self) -> None:
        self._loaded = False
        self.weights = None
