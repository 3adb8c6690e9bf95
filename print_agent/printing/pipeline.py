"""
Job rendering pipeline.

Turns a job description ({type, paper_width_profile, render_mode, content})
into the byte stream written verbatim to the printer's raw TCP port.

- text mode:  layout lines -> ESC/POS directives -> beep/feed/cut
- image mode: layout markup -> cache lookup or rasterize -> GS v 0 frame -> beep/feed/cut

render_job() raises ConfigurationError, ContentError or RenderError;
process_job() wraps the same call into a RenderResult so the caller can pick
a fallback (a RenderError result is marked as recoverable in text mode).
Either the whole stream is produced or nothing is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from print_agent.core.config import PaperProfile, RenderConfig, get_profile
from print_agent.core.errors import ContentError, PrintAgentError, RenderError
from print_agent.printing import codec
from print_agent.printing.cache import ContentCache, fingerprint
from print_agent.printing.layout import LayoutEngine
from print_agent.printing.models import Bill, ContentKind, OrderTicket, PrintJob
from print_agent.printing.raster import Rasterizer

logger = logging.getLogger(__name__)

Content = Union[OrderTicket, Bill]


@dataclass(frozen=True)
class RenderResult:
    ok: bool
    data: bytes = b""
    error: Optional[str] = None
    error_kind: Optional[str] = None
    fallback: Optional[str] = None  # render mode the caller may retry with

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": self.ok}
        if self.ok:
            body["bytes"] = len(self.data)
        else:
            body.update({"error": self.error, "kind": self.error_kind})
            if self.fallback:
                body["fallback"] = self.fallback
        return body


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
    return f"{loc}: {first.get('msg')}"


def infer_kind(content: Mapping[str, Any]) -> Optional[ContentKind]:
    """
    Guess the content type for jobs that arrive without one.
    """
    if not isinstance(content, Mapping) or "items" not in content:
        return None
    header = content.get("header")
    if "summary" in content:
        return "bill"
    if isinstance(header, Mapping) and any(k in header for k in ("ticket_number", "ticketNumber", "kotNumber")):
        return "ticket"
    return None


def parse_job(payload: Any) -> PrintJob:
    """
    Validate a raw job description.

    Accepts {type, content, ...} and the older wrapped form where content is
    itself {type, content}. When no type is given it is inferred from the
    content's shape. Raises ContentError on anything unusable.
    """
    if isinstance(payload, PrintJob):
        return payload
    if not isinstance(payload, Mapping):
        raise ContentError("Job description must be an object")
    data = dict(payload)
    inner = data.get("content")
    if isinstance(inner, Mapping) and "type" in inner and isinstance(inner.get("content"), Mapping):
        data.setdefault("type", inner["type"])
        data["content"] = inner["content"]
    if not data.get("type") and isinstance(data.get("content"), Mapping):
        kind = infer_kind(data["content"])
        if kind is None:
            raise ContentError("Job type is missing and could not be inferred from content")
        data["type"] = kind
    try:
        return PrintJob.model_validate(data)
    except ValidationError as e:
        raise ContentError(f"Invalid job: {_validation_message(e)}") from e


def parse_content(kind: ContentKind, content: Union[Content, Mapping[str, Any]]) -> Content:
    model = OrderTicket if kind == "ticket" else Bill
    if isinstance(content, model):
        return content
    try:
        return model.model_validate(content)
    except ValidationError as e:
        raise ContentError(f"Invalid {kind} content: {_validation_message(e)}") from e


class RenderPipeline:
    """
    Holds the long-lived collaborators (config, cache, rasterizer) and renders jobs.
    """

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        cache: Optional[ContentCache] = None,
        rasterizer: Optional[Rasterizer] = None,
    ) -> None:
        self.config = config or RenderConfig()
        if cache is None and self.config.cache_enabled:
            cache = ContentCache.from_config(self.config)
        self.cache = cache
        self.rasterizer = rasterizer

    def _rasterizer(self) -> Rasterizer:
        if self.rasterizer is None:
            self.rasterizer = Rasterizer(config=self.config)
        return self.rasterizer

    def render_text(self, content: Content, kind: ContentKind, profile: PaperProfile) -> bytes:
        lines = LayoutEngine(profile, self.config).render(content, kind, mode="text")
        body = codec.encode_lines(lines, profile, self.config)
        return codec.finalize(body, self.config)

    def rasterize(self, content: Content, kind: ContentKind, profile: PaperProfile):
        """
        Return the RenderedArtifact for content, from cache when possible.
        """
        fp = fingerprint(content, kind, profile, self.config) if self.cache is not None else None
        if fp is not None:
            cached = self.cache.get(fp)
            if cached is not None:
                return cached
        markup = LayoutEngine(profile, self.config).render(content, kind, mode="markup")
        artifact = self._rasterizer().rasterize(markup, profile.pixel_width, self.config.scale)
        if fp is not None:
            self.cache.put(fp, artifact)
        return artifact

    def render_image(self, content: Content, kind: ContentKind, profile: PaperProfile) -> bytes:
        artifact = self.rasterize(content, kind, profile)
        head = codec.directive(codec.Directive.INIT) + codec.directive(codec.Directive.ALIGN_CENTER)
        body = head + codec.frame_raster(artifact)
        # Only the command prefix is scanned for cuts; bitmap bytes are opaque.
        return codec.finalize(body, self.config, scan=head)

    def render(self, job: Union[PrintJob, Mapping[str, Any]]) -> bytes:
        job = parse_job(job)
        profile = get_profile(job.paper_width_profile).validate_geometry()
        content = parse_content(job.type, job.content)
        if job.render_mode == "image":
            data = self.render_image(content, job.type, profile)
        else:
            data = self.render_text(content, job.type, profile)
        logger.info(
            "Rendered %s (%s, %s) -> %d bytes",
            job.type,
            profile.name,
            job.render_mode,
            len(data),
        )
        return data

    def process(self, job: Union[PrintJob, Mapping[str, Any]]) -> RenderResult:
        try:
            return RenderResult(ok=True, data=self.render(job))
        except RenderError as e:
            logger.exception("Rasterization failed: %s", e)
            return RenderResult(ok=False, error=str(e), error_kind=e.kind, fallback="text")
        except PrintAgentError as e:
            logger.error("Render rejected (%s): %s", e.kind, e)
            return RenderResult(ok=False, error=str(e), error_kind=e.kind)


def render_job(
    job: Union[PrintJob, Mapping[str, Any]],
    config: Optional[RenderConfig] = None,
    cache: Optional[ContentCache] = None,
    rasterizer: Optional[Rasterizer] = None,
) -> bytes:
    """
    Render a job description to printer bytes. Raises PrintAgentError subclasses.
    """
    return RenderPipeline(config, cache, rasterizer).render(job)


def process_job(
    job: Union[PrintJob, Mapping[str, Any]],
    config: Optional[RenderConfig] = None,
    cache: Optional[ContentCache] = None,
    rasterizer: Optional[Rasterizer] = None,
) -> RenderResult:
    """
    Like render_job() but returns a RenderResult instead of raising.
    """
    return RenderPipeline(config, cache, rasterizer).process(job)


__all__ = [
    "RenderPipeline",
    "RenderResult",
    "infer_kind",
    "parse_content",
    "parse_job",
    "process_job",
    "render_job",
]
