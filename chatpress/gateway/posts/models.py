from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Attachment(BaseModel):
    id: str
    filename: str
    url: str
    proxy_url: str
    content_type: str | None = None


class SourceMessage(BaseModel):
    """A message as handed back by the history source."""

    id: str
    channel_id: str
    content: str
    author: str
    created_at: datetime
    edited_at: datetime | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    @property
    def attachment_count(self) -> int:
        return len(self.attachments)


class RenderedPost(BaseModel):
    """One message rendered for the site. Replaced wholesale on rebuild, never patched."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    last_modified: datetime
    author: str
    html: str  # listing card: byline, body, attachment note, share link
    body_html: str
    title: str  # plaintext, unescaped
    description: str  # plaintext, unescaped
    attachments: tuple[str, ...] = ()
    attachment_count: int = 0
