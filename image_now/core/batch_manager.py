"""Apply one transformation chain to many image files."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import yaml

from .document import ImageDocument
from .engine import OpenCVRasterEngine, RasterEngine

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Step = Mapping[str, Any]

SUPPORTED_OPERATIONS = frozenset(
    {"resize", "crop", "rotate", "blur", "watermark", "set_jpeg_quality", "set_png_quality"}
)


@dataclass
class BatchItem:
    input_path: PathLike
    output_path: Optional[PathLike] = None
    steps: Sequence[Step] = field(default_factory=tuple)


@dataclass
class BatchResult:
    success: bool
    input_path: Path
    output_path: Optional[Path] = None
    width: Optional[int] = None
    height: Optional[int] = None
    error: Optional[str] = None


def apply_step(document: ImageDocument, step: Step) -> ImageDocument:
    """Run one ``{"op": name, **kwargs}`` step against ``document``."""
    kwargs = dict(step)
    operation = kwargs.pop("op", None)
    if operation not in SUPPORTED_OPERATIONS:
        raise ValueError(f"Unsupported batch operation: {operation!r}")
    return getattr(document, operation)(**kwargs)


def apply_steps(document: ImageDocument, steps: Iterable[Step]) -> ImageDocument:
    for step in steps:
        apply_step(document, step)
    return document


def load_manifest(path: PathLike) -> List[Dict[str, Any]]:
    """Read a YAML or JSON list of ``{input, output, steps}`` entries."""
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(content)
    else:
        data = json.loads(content)
    if not isinstance(data, list):
        raise ValueError("Batch manifest must be a list of job entries.")
    return data


def prepare_batch_items(entries: Iterable[Mapping[str, Any]]) -> List[BatchItem]:
    items: List[BatchItem] = []
    for entry in entries:
        input_path = entry.get("input")
        if not input_path:
            raise ValueError("Batch entry must include an 'input' field.")
        steps = entry.get("steps") or []
        if not isinstance(steps, list) or not all(isinstance(s, Mapping) for s in steps):
            raise ValueError(f"Batch entry for {input_path} has malformed 'steps'.")
        for step in steps:
            if step.get("op") not in SUPPORTED_OPERATIONS:
                raise ValueError(f"Unsupported batch operation: {step.get('op')!r}")
        items.append(
            BatchItem(input_path=input_path, output_path=entry.get("output"), steps=list(steps))
        )
    return items


class BatchTransformProcessor:
    """Coordinate transformation jobs across multiple image files."""

    def __init__(
        self,
        engine: Optional[RasterEngine] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.config: Dict[str, Any] = dict(config or {})
        batch_settings = dict(self.config.get("batch", {}) or {})
        self.halt_on_error = bool(batch_settings.get("halt_on_error", False))
        self.max_workers = int(batch_settings.get("max_workers", 1))
        self.engine = engine or OpenCVRasterEngine.from_config(self.config)

    def _execute_item(self, item: BatchItem) -> BatchResult:
        input_path = Path(item.input_path)
        logger.info("Batch processing %s", input_path)
        try:
            document = ImageDocument.from_config(input_path, self.config, engine=self.engine)
            with document:
                apply_steps(document, item.steps)
                width, height = document.width, document.height
                output_path = Path(item.output_path) if item.output_path else input_path
                document.save(output_path)
            return BatchResult(
                success=True,
                input_path=input_path,
                output_path=output_path,
                width=width,
                height=height,
            )
        except Exception as exc:
            logger.exception("Failed to process %s: %s", input_path, exc)
            return BatchResult(success=False, input_path=input_path, error=str(exc))

    def process(self, items: Iterable[BatchItem]) -> List[BatchResult]:
        item_list = list(items)
        if not item_list:
            return []

        if self.max_workers <= 1 or self.halt_on_error:
            results: List[BatchResult] = []
            for item in item_list:
                result = self._execute_item(item)
                results.append(result)
                if self.halt_on_error and not result.success:
                    break
            return results

        ordered: List[Optional[BatchResult]] = [None] * len(item_list)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(self._execute_item, item): index
                for index, item in enumerate(item_list)
            }
            for future in as_completed(future_to_index):
                ordered[future_to_index[future]] = future.result()
        return [result for result in ordered if result is not None]


def summarize(results: Sequence[BatchResult]) -> int:
    """Log a summary and return a process-style exit code (0 when all succeeded)."""
    failures = [r for r in results if not r.success]
    logger.info("Batch complete. Successes: %s | Failures: %s", len(results) - len(failures), len(failures))
    for result in failures:
        logger.error("Failed job for %s: %s", result.input_path, result.error)
    return 0 if not failures else 1


__all__ = [
    "BatchItem",
    "BatchResult",
    "BatchTransformProcessor",
    "SUPPORTED_OPERATIONS",
    "apply_step",
    "apply_steps",
    "load_manifest",
    "prepare_batch_items",
    "summarize",
]
