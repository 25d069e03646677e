"""Media attachments for user messages: images and documents."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import mimetypes
from pathlib import Path

from castor.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class _Media:
    """Exactly one of ``url``, ``data`` (base64) or ``file_id`` locates the content."""

    url: str | None = None
    data: str | None = None
    file_id: str | None = None
    mime_type: str | None = None

    def __post_init__(self) -> None:
        kind = type(self).__name__
        given = [v for v in (self.url, self.data, self.file_id) if v]
        if len(given) != 1:
            raise ConfigurationError(
                f"{kind} needs exactly one of url, data, or file_id",
                hint=f"Use {kind}.from_url(), {kind}.from_base64(), "
                f"{kind}.from_file_id(), or {kind}.from_path().",
            )
        if self.data and not self.mime_type:
            raise ConfigurationError(
                f"{kind} with inline data needs a mime_type",
                hint="Pass mime_type='image/png' (or the matching type).",
            )

    def data_url(self) -> str:
        """Inline content as a ``data:`` URL."""
        return f"data:{self.mime_type};base64,{self.data}"


def _read_path(path: str | Path, mime_type: str | None) -> tuple[Path, str, str]:
    p = Path(path)
    if not p.is_file():
        raise ConfigurationError(f"File not found: {p}")
    mt = mime_type or mimetypes.guess_type(str(p))[0] or "application/octet-stream"
    return p, base64.b64encode(p.read_bytes()).decode("ascii"), mt


@dataclass(frozen=True, slots=True)
class Image(_Media):
    #: Provider fidelity hint (``"low"``, ``"high"``, ``"auto"``).
    detail: str | None = None

    @classmethod
    def from_url(cls, url: str, *, detail: str | None = None) -> Image:
        return cls(url=url, detail=detail)

    @classmethod
    def from_base64(
        cls, data: str, mime_type: str, *, detail: str | None = None
    ) -> Image:
        return cls(data=data, mime_type=mime_type, detail=detail)

    @classmethod
    def from_file_id(cls, file_id: str, *, detail: str | None = None) -> Image:
        return cls(file_id=file_id, detail=detail)

    @classmethod
    def from_path(
        cls,
        path: str | Path,
        *,
        mime_type: str | None = None,
        detail: str | None = None,
    ) -> Image:
        """Read a local image; the MIME type is guessed from the extension."""
        _, data, mt = _read_path(path, mime_type)
        return cls(data=data, mime_type=mt, detail=detail)


@dataclass(frozen=True, slots=True)
class Document(_Media):
    filename: str | None = None

    @classmethod
    def from_url(cls, url: str) -> Document:
        return cls(url=url)

    @classmethod
    def from_base64(
        cls, data: str, mime_type: str, *, filename: str | None = None
    ) -> Document:
        return cls(data=data, mime_type=mime_type, filename=filename)

    @classmethod
    def from_file_id(cls, file_id: str) -> Document:
        return cls(file_id=file_id)

    @classmethod
    def from_path(
        cls, path: str | Path, *, mime_type: str | None = None
    ) -> Document:
        """Read a local document, keeping its file name."""
        p, data, mt = _read_path(path, mime_type)
        return cls(data=data, mime_type=mt, filename=p.name)


Attachment = Image | Document
