from pydantic import BaseModel, ConfigDict, Field


class PageVisit(BaseModel):
    """Marks that a page was served; the replay tool starts a new page session on it."""
    model_config = ConfigDict(populate_by_name=True)

    request_path: str = Field(alias="request path")
    unix_time: int = Field(alias="unix time")

    def to_log_record(self) -> dict:
        return self.model_dump(by_alias=True)


def page_visit_record(request_path: str, unix_time: int) -> dict:
    return PageVisit(request_path=request_path, unix_time=unix_time).to_log_record()
