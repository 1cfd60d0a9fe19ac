from __future__ import annotations

import numpy as np
import pytest

import subjectscan.core.detectors.yolo as yolo_mod
from subjectscan.core.detectors.base import NullDetector
from subjectscan.core.errors import DetectionError


class _FakeBoxes:
    def __init__(self, data):
        self.data = data

    def __len__(self):
        return int(self.data.shape[0])


class _FakeResult:
    def __init__(self, boxes=None, names=None):
        self.boxes = boxes
        self.names = names


class _FakeYOLO:
    instances: list[_FakeYOLO] = []

    def __init__(self, model_name):
        self.model_name = model_name
        self.names = {0: "person", 1: "bicycle", 2: "car"}
        self.to_calls = []
        self.predict_calls = []
        self.results = []
        self.error = None
        _FakeYOLO.instances.append(self)

    def to(self, device):
        self.to_calls.append(device)
        return self

    def predict(self, frame, **kwargs):
        self.predict_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.results


@pytest.fixture()
def fake_yolo(monkeypatch):
    _FakeYOLO.instances = []
    monkeypatch.setattr(yolo_mod, "YOLO", _FakeYOLO)
    monkeypatch.setattr(yolo_mod.YoloObjectDetector, "_torch_threads_configured", True)
    return _FakeYOLO


def _frame():
    return np.zeros((100, 200, 3), dtype=np.uint8)


def test_construction_is_lazy(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx")
    assert detector.model is None
    assert fake_yolo.instances == []


def test_warm_up_is_idempotent_and_skips_to_for_onnx(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx", conf=0.4, max_detections=5)
    detector.warm_up()
    detector.warm_up()

    assert len(fake_yolo.instances) == 1
    model = fake_yolo.instances[0]
    assert model.to_calls == []
    assert detector._predict_kwargs == {"conf": 0.4, "verbose": False, "device": "cpu", "max_det": 5}


def test_torch_model_is_moved_to_device(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("yolo11n.pt", device="cpu")
    detector.warm_up()
    assert fake_yolo.instances[0].to_calls == ["cpu"]


def test_class_allow_list_maps_names_to_ids(fake_yolo, caplog):
    detector = yolo_mod.YoloObjectDetector("model.onnx", classes=["car", "person", "unicorn"])
    detector.warm_up()

    assert sorted(detector._predict_kwargs["classes"]) == [0, 2]
    assert "unicorn" in caplog.text


def test_detect_converts_boxes_to_xywh(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx")
    detector.warm_up()
    data = np.array(
        [
            [10.0, 20.0, 50.0, 80.0, 0.9, 0.0],
            [0.0, 0.0, 30.0, 10.0, 0.4, 2.0],
        ],
        dtype=np.float32,
    )
    fake_yolo.instances[0].results = [_FakeResult(_FakeBoxes(data))]

    dets = detector.detect(_frame())

    assert [d.label for d in dets] == ["person", "car"]
    assert dets[0].bbox == (10.0, 20.0, 40.0, 60.0)
    assert dets[0].score == pytest.approx(0.9)
    assert dets[1].bbox == (0.0, 0.0, 30.0, 10.0)


def test_detect_prefers_result_names_and_caps_rows(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx", max_detections=1)
    detector.warm_up()
    data = np.array([[0, 0, 1, 1, 0.8, 7], [0, 0, 1, 1, 0.7, 7]], dtype=np.float32)
    fake_yolo.instances[0].results = [_FakeResult(_FakeBoxes(data), names={7: "truck"})]

    dets = detector.detect(_frame())
    assert [d.label for d in dets] == ["truck"]


def test_detect_empty_results(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx")
    assert detector.detect(_frame()) == []

    model = fake_yolo.instances[0]
    model.results = [_FakeResult(None)]
    assert detector.detect(_frame()) == []
    model.results = [_FakeResult(_FakeBoxes(np.zeros((0, 6), dtype=np.float32)))]
    assert detector.detect(_frame()) == []


def test_inference_failure_raises_detection_error(fake_yolo):
    detector = yolo_mod.YoloObjectDetector("model.onnx")
    detector.warm_up()
    fake_yolo.instances[0].error = RuntimeError("cuda exploded")

    with pytest.raises(DetectionError, match="cuda exploded"):
        detector.detect(_frame())


def test_torch_threads_env_is_read_once(monkeypatch):
    calls = []

    class _FakeTorch:
        @staticmethod
        def set_num_threads(n):
            calls.append(n)

    monkeypatch.setattr(yolo_mod.YoloObjectDetector, "_torch_threads_configured", False)
    monkeypatch.setattr(yolo_mod.importlib, "import_module", lambda name: _FakeTorch)
    monkeypatch.setenv("SUBJECTSCAN_TORCH_THREADS", "3")

    yolo_mod.YoloObjectDetector._configure_torch_threads_from_env()
    yolo_mod.YoloObjectDetector._configure_torch_threads_from_env()

    assert calls == [3]


def test_null_detector_finds_nothing():
    detector = NullDetector()
    detector.warm_up()
    assert detector.detect(_frame()) == []
