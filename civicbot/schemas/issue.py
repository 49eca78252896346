from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, Literal, List
from datetime import datetime
from civicbot.models.issue import IssueStatus

StatusLabel = Literal["Новая", "В обработке", "Завершено", "Отклонено"]


def _label(v):
    return v.value if isinstance(v, IssueStatus) else v


class AttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_id: str
    file_type: str
    local_path: str = ""
    created_at: datetime


class IssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    chat_id: int
    text: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: StatusLabel
    district: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    # last admin comment, as shown in the chat
    last_comment: Optional[str] = None
    attachments: List[AttachmentOut] = []

    @field_validator("status", mode="before")
    @classmethod
    def status_label(cls, v):
        return _label(v)


class PaginatedIssuesOut(BaseModel):
    items: list[IssueOut]
    total: int
    offset: int
    limit: int


class WebIssueIn(BaseModel):
    text: str = Field(min_length=1, max_length=4000)
    district: Optional[str] = None
    category: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class IssueCreated(BaseModel):
    message: str = "Заявка успешно создана"
    id: int
    status: StatusLabel


class UploadedFile(BaseModel):
    name: str
    type: str
    url: str


class StatusIn(BaseModel):
    # member name (in_progress) or label (В обработке)
    status: str = Field(min_length=1, max_length=32)
    admin_tg: Optional[int] = None
    comment: Optional[str] = Field(default=None, max_length=4000)


class CommentIn(BaseModel):
    text: str = Field(min_length=1, max_length=4000)
    admin_tg: Optional[int] = None


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    issue_id: int
    admin_user_id: int
    text: str
    created_at: datetime


class StatusChangeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    old_status: Optional[StatusLabel] = None
    new_status: StatusLabel
    changed_by: Optional[int] = None
    comment: Optional[str] = None
    created_at: datetime

    @field_validator("old_status", "new_status", mode="before")
    @classmethod
    def status_labels(cls, v):
        return _label(v)
