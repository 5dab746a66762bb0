"""Tests for the ONNX Runtime loader (onnxruntime itself is mocked out)."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from keypoints.summarizer.backend import OnnxBackend, OnnxBackendLoader
from keypoints.summarizer.errors import BackendUnavailable


def _session(output_names: list[str], outputs: list[np.ndarray]) -> MagicMock:
    session = MagicMock()
    named = []
    for name in output_names:
        node = MagicMock()
        node.name = name
        named.append(node)
    session.get_outputs.return_value = named
    session.run.return_value = outputs
    session.get_providers.return_value = ["CPUExecutionProvider"]
    return session


def _fake_ort(create: MagicMock) -> MagicMock:
    ort = MagicMock()
    ort.InferenceSession = create
    return ort


class TestOnnxBackend:
    def test_run_returns_named_outputs(self) -> None:
        scores = np.array([[0.2, 0.8]], dtype=np.float32)
        session = _session(["sentence_scores"], [scores])
        backend = OnnxBackend(session)
        ids = np.zeros((1, 2, 4), dtype=np.int32)

        outputs = backend.run({"input_ids": ids})

        assert list(outputs) == ["sentence_scores"]
        assert outputs["sentence_scores"] is scores
        session.run.assert_called_once_with(None, {"input_ids": ids})
        assert backend.providers == ["CPUExecutionProvider"]


class TestOnnxBackendLoader:
    def test_first_working_provider_wins(self) -> None:
        session = _session(["output"], [np.zeros(3)])

        def create(path: str, options: object, providers: list[str] | None = None) -> MagicMock:
            if providers == ["CUDAExecutionProvider"]:
                raise RuntimeError("CUDA not available")
            return session

        create_mock = MagicMock(side_effect=create)
        loader = OnnxBackendLoader("model.onnx", ["CUDAExecutionProvider", "CPUExecutionProvider"])

        with patch.dict(sys.modules, {"onnxruntime": _fake_ort(create_mock)}):
            backend = loader()

        assert isinstance(backend, OnnxBackend)
        assert create_mock.call_count == 2
        assert create_mock.call_args.kwargs["providers"] == ["CPUExecutionProvider"]

    def test_auto_detect_after_all_providers_fail(self) -> None:
        session = _session(["output"], [np.zeros(3)])

        def create(path: str, options: object, providers: list[str] | None = None) -> MagicMock:
            if providers is not None:
                raise RuntimeError(f"{providers[0]} failed")
            return session

        create_mock = MagicMock(side_effect=create)
        loader = OnnxBackendLoader("model.onnx", ["WebGpuExecutionProvider"])

        with patch.dict(sys.modules, {"onnxruntime": _fake_ort(create_mock)}):
            backend = loader()

        assert isinstance(backend, OnnxBackend)
        assert create_mock.call_count == 2
        assert "providers" not in create_mock.call_args.kwargs

    def test_everything_fails(self) -> None:
        create_mock = MagicMock(side_effect=FileNotFoundError("model.onnx"))
        loader = OnnxBackendLoader("model.onnx", ["CPUExecutionProvider"])

        with (
            patch.dict(sys.modules, {"onnxruntime": _fake_ort(create_mock)}),
            pytest.raises(BackendUnavailable, match="Could not load scoring model") as excinfo,
        ):
            loader()

        assert isinstance(excinfo.value.__cause__, FileNotFoundError)

    def test_missing_onnxruntime(self) -> None:
        loader = OnnxBackendLoader("model.onnx")
        with (
            patch.dict(sys.modules, {"onnxruntime": None}),
            pytest.raises(BackendUnavailable, match="onnxruntime is not installed"),
        ):
            loader()
