import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class Record(BaseModel):
    """A record as persisted in the remote store.

    Field names are camelCase on the wire. Absent or null fields take the
    declared default; fields that fail validation are reset to their default
    and the repair is logged instead of failing the read.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @classmethod
    def from_record(cls, data: Any, **overrides: Any):
        if data is not None and not isinstance(data, dict):
            logger.warning("Discarding malformed %s record of type %s", cls.__name__, type(data).__name__)
        raw: Dict[str, Any] = dict(data) if isinstance(data, dict) else {}
        for name, value in overrides.items():
            field = cls.model_fields[name]
            raw[field.alias or name] = value
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            bad = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            logger.warning("Repairing %s record, resetting %s to defaults", cls.__name__, sorted(map(str, bad)))
            return cls.model_validate({k: v for k, v in raw.items() if k not in bad})

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
