from dataclasses import dataclass, field
from typing import Dict, Tuple, Union

MetadataValue = Union[str, int, float]


@dataclass(frozen=True)
class IndexedDocument:
    id: str
    text: str
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)
    embedding: Tuple[float, ...] = ()

    @property
    def dims(self) -> int:
        return len(self.embedding)
