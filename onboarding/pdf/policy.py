"""
Failure policy for PDF pipeline stages.

Cosmetic stages (appearance probing, flattening, signature stamping) degrade
the document but never fail the request. Structural stages (decoding,
loading, rendering, page copy) abort the whole pipeline.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from onboarding.pdf.encoding import PdfPipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OnFailure(str, Enum):
    CONTINUE = "continue"
    ABORT = "abort"


class PipelineStageError(PdfPipelineError):
    """A stage with ABORT policy failed."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


@dataclass(frozen=True)
class PipelineStage:
    name: str
    on_failure: OnFailure


LOAD = PipelineStage("load", OnFailure.ABORT)
INSPECT = PipelineStage("inspect", OnFailure.CONTINUE)
RENDER = PipelineStage("render", OnFailure.ABORT)
FLATTEN = PipelineStage("flatten", OnFailure.CONTINUE)
RELOAD = PipelineStage("reload", OnFailure.ABORT)
STAMP = PipelineStage("stamp", OnFailure.CONTINUE)
COPY = PipelineStage("copy", OnFailure.ABORT)
PACKET_FORM = PipelineStage("packet-form", OnFailure.CONTINUE)


def run_stage(
    stage: PipelineStage,
    func: Callable[..., T],
    *args: Any,
    label: str = "",
    default: Optional[T] = None,
    **kwargs: Any,
) -> Optional[T]:
    """
    Run one pipeline stage under its failure policy.

    CONTINUE: the error is logged and `default` is returned.
    ABORT: the error is logged and re-raised as PipelineStageError
    (PdfPipelineError subclasses propagate unchanged).
    """
    tag = f"[{stage.name}:{label}]" if label else f"[{stage.name}]"
    try:
        return func(*args, **kwargs)
    except Exception as e:
        if stage.on_failure == OnFailure.CONTINUE:
            logger.warning(f"{tag} failed, continuing: {e}")
            return default
        logger.error(f"{tag} failed, aborting: {e}")
        if isinstance(e, PdfPipelineError):
            raise
        raise PipelineStageError(f"{stage.name}:{label}" if label else stage.name, e) from e
