"""Pydantic schemas for scan results."""

from pydantic import BaseModel, Field


class ScanOutcome(BaseModel):
    """Result holder for one INSTREAM scan.

    ``ClamAVClient.scan`` fills in ``content_hash`` only. ``scan_stream`` and
    ``scan_file`` populate every field.
    """

    filename: str | None = None
    content_hash: str | None = Field(default=None, description="Lowercase hex MD5 of the streamed bytes")
    raw_reply: bytes = b""
    is_clean: bool = False

    @property
    def reply_text(self) -> str:
        from clamstream.services.clamav.replies import reply_text

        return reply_text(self.raw_reply)
