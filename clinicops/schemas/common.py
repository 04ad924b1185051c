from datetime import datetime, timezone
from typing import Annotated, ClassVar, Optional, Tuple

from pydantic import AfterValidator, BaseModel, model_validator


def _to_naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    # Timestamps are stored as naive UTC
    if v is not None and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


UTCDateTime = Annotated[datetime, AfterValidator(_to_naive_utc)]


class PlainModel(BaseModel):
    """Request body whose enum fields dump as their plain string values."""

    class Config:
        use_enum_values = True


class PatchModel(PlainModel):
    """
    Partial update body. Every field is optional, but the ones listed in
    ``not_null`` back NOT NULL columns: they may be omitted, never sent as null.
    """

    not_null: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        nulls = [name for name in self.not_null if name in self.model_fields_set and getattr(self, name) is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self
