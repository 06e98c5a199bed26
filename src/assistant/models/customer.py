from typing import Optional
from sqlmodel import Field
from assistant.models.base import TimestampMixin


class Customer(TimestampMixin, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    name: str
    location: str
    type: str = Field(index=True, description="Customer category, e.g. Supermarket or Hotel")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "location": self.location, "type": self.type}
