"""Inference backend contract and the ONNX Runtime loader.

The pipeline treats the scoring model as an opaque capability: it sends a
single ``input_ids`` tensor and reads back a mapping of named outputs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from keypoints.summarizer.errors import BackendUnavailable

logger = logging.getLogger(__name__)


class InferenceBackend(Protocol):
    """Anything that maps named input tensors to named output tensors."""

    def run(self, inputs: Mapping[str, np.ndarray]) -> Mapping[str, Any]: ...


BackendLoader = Callable[[], InferenceBackend]
"""Zero-argument callable that initialises a backend or raises."""


class OnnxBackend:
    """Adapter exposing an ``onnxruntime.InferenceSession`` as a named-output mapping."""

    def __init__(self, session: Any) -> None:
        self._session = session
        self._output_names = [o.name for o in session.get_outputs()]

    @property
    def providers(self) -> list[str]:
        return list(self._session.get_providers())

    def run(self, inputs: Mapping[str, np.ndarray]) -> dict[str, Any]:
        outputs = self._session.run(None, dict(inputs))
        return dict(zip(self._output_names, outputs, strict=True))


class OnnxBackendLoader:
    """Create an ONNX Runtime session, trying execution providers in order.

    Each configured provider is attempted on its own; if all of them fail the
    runtime's own provider auto-detection is tried last.  Raises
    :class:`BackendUnavailable` when no configuration works.
    """

    def __init__(self, model_path: str | Path, providers: Sequence[str] = ()) -> None:
        self.model_path = str(model_path)
        self.providers = list(providers)

    def __call__(self) -> OnnxBackend:
        try:
            import onnxruntime as ort
        except ImportError as exc:
            msg = "onnxruntime is not installed (install the 'onnx' extra)"
            raise BackendUnavailable(msg) from exc

        options = ort.SessionOptions()
        options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        last_error: Exception | None = None
        for provider in self.providers:
            try:
                session = ort.InferenceSession(self.model_path, options, providers=[provider])
            except Exception as exc:
                last_error = exc
                logger.warning("Failed to load %s with %s: %s", self.model_path, provider, exc)
                continue
            logger.info("Model %s loaded with %s", self.model_path, provider)
            return OnnxBackend(session)

        try:
            session = ort.InferenceSession(self.model_path, options)
        except Exception as exc:
            logger.error(
                "All execution providers failed for %s. Last error: %s",
                self.model_path,
                last_error or exc,
            )
            msg = f"Could not load scoring model {self.model_path!r}: {exc}"
            raise BackendUnavailable(msg) from exc

        logger.info("Model %s loaded with auto-detected execution provider", self.model_path)
        return OnnxBackend(session)
