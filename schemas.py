"""
Database Schemas for Natours

Each Pydantic model maps to a MongoDB collection (see models.py).
- Tour -> "tours"
- Event -> "events"

Attributes are snake_case in Python and camelCase in the stored documents
(max_capacity -> maxCapacity), so always dump with by_alias=True before
writing to MongoDB.
"""

import math
import re
from datetime import datetime, timezone
from typing import Annotated, ClassVar, Dict, List, Literal, Optional, Tuple

from bson import ObjectId
from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    StringConstraints,
    ValidationError,
    WithJsonSchema,
    field_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

LETTERS_AND_SPACES = re.compile(r"^[A-Za-z ]+$")


def now() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_object_id(value):
    if isinstance(value, str):
        if not ObjectId.is_valid(value):
            raise ValueError("Invalid id")
        return ObjectId(value)
    return value


PyObjectId = Annotated[
    ObjectId,
    BeforeValidator(_coerce_object_id),
    PlainSerializer(str, when_used="json"),
    WithJsonSchema({"type": "string", "pattern": "^[0-9a-fA-F]{24}$"}),
]

Trimmed = Annotated[str, StringConstraints(strip_whitespace=True)]


class Document(BaseModel):
    """Base for stored documents: camelCase aliases and an optional _id."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    id: Optional[PyObjectId] = Field(None, alias="_id", description="MongoDB document id")

    # ("location.address", "missing") -> message shown instead of pydantic's default
    error_messages: ClassVar[Dict[Tuple[str, str], str]] = {}

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise self._reworded(exc) from None

    @classmethod
    def model_validate(cls, obj, **kwargs):
        try:
            return super().model_validate(obj, **kwargs)
        except ValidationError as exc:
            raise cls._reworded(exc) from None

    @classmethod
    def _reworded(cls, exc: ValidationError) -> ValidationError:
        if not cls.error_messages:
            return exc
        line_errors = []
        for err in exc.errors():
            path = ".".join(str(part) for part in err["loc"])
            message = cls.error_messages.get((path, err["type"]))
            if message is not None:
                custom = PydanticCustomError(err["type"], message)
                line_errors.append({"type": custom, "loc": err["loc"], "input": err["input"]})
                continue
            line = {"type": err["type"], "loc": err["loc"], "input": err["input"]}
            if "ctx" in err:
                line["ctx"] = err["ctx"]
            line_errors.append(line)
        return ValidationError.from_exception_data(exc.title, line_errors)

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        if self.id is not None:
            doc["_id"] = self.id
        return doc


class GeoPoint(BaseModel):
    """GeoJSON Point. Coordinates are [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")
    address: Optional[str] = None
    description: Optional[str] = None


class EventLocation(GeoPoint):
    type: Literal["Point"]
    address: str = Field(..., description="Street address of the venue")


class Tour(Document):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=40)] = Field(
        ..., description="Unique tour name, letters and spaces only"
    )
    slug: Optional[str] = Field(None, description="Derived from name on save")
    max_capacity: int = Field(..., description="Maximum group size")
    ratings_average: float = Field(4.5, ge=1, le=5, description="Average rating, one decimal")
    ratings_quantity: int = Field(0, ge=0)
    price: float = Field(..., description="Price per person")
    summary: Trimmed = Field(..., description="Short summary shown on the overview page")
    description: Optional[Trimmed] = None
    image_cover: str = Field(..., description="Cover image file name")
    images: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now)
    start_date: datetime
    location: Optional[GeoPoint] = None
    organiser: Optional[PyObjectId] = Field(None, description="Id of the organising user")
    secret_tour: bool = Field(False, description="Hidden from every standard read")

    error_messages = {
        ("name", "missing"): "A tour must have a name",
        ("name", "string_too_long"): "A tour name must have less or equal than 40 characters",
        ("name", "string_too_short"): "A tour name must have more or equal than 10 characters",
        ("name", "value_error"): "Tour name must only contain characters.",
        ("maxCapacity", "missing"): "A tour must have a group size",
        ("ratingsAverage", "greater_than_equal"): "Rating must be above 1.0",
        ("ratingsAverage", "less_than_equal"): "Rating must be below 5.0",
        ("price", "missing"): "A tour must have a price",
        ("summary", "missing"): "A tour must have a summary",
        ("imageCover", "missing"): "A tour must have a cover image",
        ("startDate", "missing"): "A tour must have a startDate",
    }

    @field_validator("name")
    @classmethod
    def name_has_only_letters(cls, value: str) -> str:
        if not LETTERS_AND_SPACES.match(value):
            raise ValueError("Tour name must only contain characters.")
        return value

    @field_validator("ratings_average")
    @classmethod
    def round_rating(cls, value: float) -> float:
        # half-up, so 4.65 -> 4.7 rather than banker's 4.6
        return math.floor(value * 10 + 0.5) / 10


class Event(Document):
    created_at: datetime = Field(default_factory=now)
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=4, max_length=40)]
    organiser: str = Field(..., description="Organiser display name")
    description: str
    image_cover: Optional[str] = None
    start_date: datetime
    start_time: datetime
    end_time: datetime
    location: EventLocation

    error_messages = {
        ("name", "missing"): "An event must have a name",
        ("name", "string_too_long"): "An event name must have less or equal than 40 characters",
        ("name", "string_too_short"): "An event name must have more or equal than 4 characters",
        ("name", "value_error"): "Event name must only contain characters.",
        ("organiser", "missing"): "An event must have an organiser",
        ("description", "missing"): "An event must have a description",
        ("startDate", "missing"): "An event must have a startDate",
        ("startTime", "missing"): "An event must have a startTime",
        ("endTime", "missing"): "An event must have an endTime",
        ("location", "missing"): "An event must have a location",
        ("location.type", "missing"): "An event location must have a type",
        ("location.coordinates", "missing"): "An event location must have coordinates",
        ("location.address", "missing"): "An event location must have an address",
    }

    @field_validator("name")
    @classmethod
    def name_has_only_letters(cls, value: str) -> str:
        if not LETTERS_AND_SPACES.match(value):
            raise ValueError("Event name must only contain characters.")
        return value
