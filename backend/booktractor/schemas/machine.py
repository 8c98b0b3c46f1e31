from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Literal, Optional, Tuple

from .base import CamelModel


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str) and item]


class MachineSpecs(BaseModel):
    """Typed view of a machine's free-form ``specs`` bag.

    Known keys are lifted into optional fields; a key that is missing or has the
    wrong shape becomes ``None``. Everything else is preserved in ``extra``.
    """

    images: Optional[List[str]] = None
    gallery: Optional[List[str]] = None
    highlights: Optional[List[str]] = None
    location: Optional[str] = None
    extra: Dict[str, Any] = {}

    @model_validator(mode="before")
    @classmethod
    def from_bag(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return {}
        if "extra" in data and set(data) <= {"images", "gallery", "highlights", "location", "extra"}:
            return data
        location = data.get("location")
        return {
            "images": _string_list(data.get("images")),
            "gallery": _string_list(data.get("gallery")),
            "highlights": _string_list(data.get("highlights")),
            "location": location.strip() or None if isinstance(location, str) else None,
            "extra": {
                k: v
                for k, v in data.items()
                if k not in ("images", "gallery", "highlights", "location")
            },
        }

    def gallery_images(self) -> List[str]:
        if self.images:
            return list(self.images)
        if self.gallery:
            return list(self.gallery)
        return []

    def cover_image(self) -> Optional[str]:
        images = self.gallery_images()
        return images[0] if images else None

    def to_bag(self) -> Dict[str, Any]:
        bag = dict(self.extra)
        for key in ("images", "gallery", "highlights", "location"):
            value = getattr(self, key)
            if value is not None:
                bag[key] = value
        return bag


class MachineOwner(BaseModel):
    id: str
    name: Optional[str] = None


class MachineStats(CamelModel):
    instance_count: int = 0
    active_instance_count: int = 0
    booking_count: int = 0
    active_booking_count: int = 0


class MachineAvailability(BaseModel):
    active: int = 0
    total: int = 0


class MachineReview(BaseModel):
    rating: int
    comment: Optional[str] = None
    author: Optional[str] = None


class Machine(CamelModel):
    id: str
    name: str
    code: str
    description: Optional[str] = None
    category: Optional[str] = None
    price_per_hour: Optional[int] = None  # cents
    total_count: Optional[int] = None
    specs: MachineSpecs = MachineSpecs()
    availability_json: Optional[Dict[str, Any]] = None
    owner: Optional[MachineOwner] = None
    owner_name: Optional[str] = None
    stats: Optional[MachineStats] = None
    average_rating: Optional[float] = None
    availability: Optional[MachineAvailability] = None
    available_count: Optional[int] = None
    popularity: Optional[int] = None
    reviews: List[MachineReview] = []

    def instance_counts(self) -> Tuple[int, int]:
        """Return ``(active, total)`` instance counts as reported by the server."""
        if self.stats is not None:
            return self.stats.active_instance_count, self.stats.instance_count
        if self.availability is not None:
            return self.availability.active, self.availability.total
        return 0, 0


class MachineInstance(CamelModel):
    id: str
    template_id: str
    instance_code: str
    status: Literal["active", "maintenance", "retired"] = "active"
    availability_json: Optional[Dict[str, Any]] = None


# ─── Inputs ────────────────────────────────────────────────────────────────

class AvailabilitySlot(BaseModel):
    start: str
    end: str


class AvailabilityJson(BaseModel):
    base: Optional[Dict[str, List[AvailabilitySlot]]] = None
    overrides: Optional[Dict[str, List[AvailabilitySlot]]] = None


class MachineCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    total_count: int = Field(1, ge=1, le=100)
    price_per_hour: int = Field(..., ge=0)
    specs: Optional[Dict[str, Any]] = None
    availability_json: Optional[AvailabilityJson] = None


class MachineUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    total_count: Optional[int] = Field(None, ge=1, le=100)
    price_per_hour: Optional[int] = Field(None, ge=0)
    specs: Optional[Dict[str, Any]] = None
    availability_json: Optional[AvailabilityJson] = None


class InstanceGenerate(CamelModel):
    # Omitted count tops the template up to its totalCount
    count: Optional[int] = Field(None, ge=1, le=100)


class InstanceUpdate(CamelModel):
    availability_json: Optional[AvailabilityJson] = None
    status: Optional[Literal["active", "maintenance", "retired"]] = None


class CatalogSearch(CamelModel):
    query: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    sort_by: Literal["price", "name", "availability"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


# ─── View-models ────────────────────────────────────────────────────────────

class MachineDetailView(BaseModel):
    machine: Machine
    gallery: List[str]
    cover_image: Optional[str] = None
    highlights: List[str]
    location: Optional[str] = None
    availability_ratio: float
