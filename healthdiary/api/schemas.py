from datetime import date, datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies use the camelCase keys the web client sends."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def parse_day(value):
    """Accept DD.MM.YYYY as well as ISO dates."""
    if isinstance(value, str) and value.count(".") == 2:
        return datetime.strptime(value.strip(), "%d.%m.%Y").date()
    return value


def naive_utc(value: datetime) -> datetime:
    # Columns are timezone-naive UTC
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


RecordDateTime = Annotated[datetime, AfterValidator(naive_utc)]


class DateRange(CamelModel):
    start_date: date
    end_date: date
