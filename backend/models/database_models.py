from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SavedChat:
    name: str
    messages: list[dict] = field(default_factory=list)
    system_prompt: str = ""
    model: str = ""
    provider: str = ""
    total_cost: float = 0.0
    timestamp: int = 0
    selected_model_id: str = ""
    selected_provider_id: str = ""
    id: Optional[int] = None
