"""
Tests for the recognizer backends. Network and model calls are mocked.
"""

import sys
import threading
import time
import types
from unittest.mock import MagicMock

import pytest
import requests

from plate_extractor import ocr_engine
from plate_extractor.errors import RecognizerError
from plate_extractor.ocr_engine import (
    EasyOCREngine,
    FallbackRecognizer,
    OCRSpaceEngine,
    TextRecognizer,
    build_recognizer,
)


def _response(payload=None, ok=True, status_code=200, reason="OK"):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status_code
    resp.reason = reason
    resp.json.return_value = payload
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def jpeg_bytes(encode_image, noise_array):
    return encode_image(noise_array(32, 24), "JPEG")


class TestOCRSpaceEngine:
    def test_segments_joined(self, session):
        session.post.return_value = _response({
            "IsErroredOnProcessing": False,
            "ParsedResults": [
                {"ParsedText": " KA 51 \r\n"},
                {"ParsedText": "   "},
                {"ParsedText": "AK 4247"},
            ],
        })
        engine = OCRSpaceEngine(api_key="key", session=session)
        assert engine.recognize(b"\xff\xd8data") == "KA 51\n\nAK 4247"

    def test_form_fields(self, session):
        session.post.return_value = _response({"ParsedResults": []})
        engine = OCRSpaceEngine(api_key=" key ", url="http://ocr.test/parse", timeout=5, session=session)
        assert engine.recognize(b"png", media_type="image/png") == ""

        args, kwargs = session.post.call_args
        assert args == ("http://ocr.test/parse",)
        assert kwargs["data"] == {
            "apikey": "key",
            "language": "eng",
            "isOverlayRequired": "false",
            "scale": "true",
            "OCREngine": "2",
        }
        assert kwargs["files"] == {"file": ("upload.png", b"png", "image/png")}
        assert kwargs["timeout"] == 5

    def test_jpeg_filename(self):
        assert OCRSpaceEngine._filename("image/jpeg") == "upload.jpg"
        assert OCRSpaceEngine._filename("image/gif") == "upload.gif"

    def test_processing_error(self, session):
        session.post.return_value = _response({
            "IsErroredOnProcessing": True,
            "ErrorMessage": ["File failed validation", "Image too large"],
        })
        engine = OCRSpaceEngine(api_key="key", session=session)
        with pytest.raises(RecognizerError, match="File failed validation; Image too large") as exc:
            engine.recognize(b"data")
        assert exc.value.engine == "ocrspace"

    def test_http_error(self, session):
        session.post.return_value = _response(ok=False, status_code=500, reason="Server Error")
        engine = OCRSpaceEngine(api_key="key", session=session)
        with pytest.raises(RecognizerError, match="HTTP 500"):
            engine.recognize(b"data")

    def test_connection_error(self, session):
        session.post.side_effect = requests.ConnectionError("refused")
        engine = OCRSpaceEngine(api_key="key", session=session)
        with pytest.raises(RecognizerError, match="Request failed"):
            engine.recognize(b"data")

    def test_invalid_json(self, session):
        resp = _response()
        resp.json.side_effect = ValueError("not json")
        session.post.return_value = resp
        engine = OCRSpaceEngine(api_key="key", session=session)
        with pytest.raises(RecognizerError, match="Invalid JSON"):
            engine.recognize(b"data")

    def test_oversized_payload_not_sent(self, session):
        engine = OCRSpaceEngine(api_key="key", max_payload_bytes=10, session=session)
        with pytest.raises(RecognizerError, match="exceeds"):
            engine.recognize(b"x" * 11)
        session.post.assert_not_called()

    def test_empty_payload_not_sent(self, session):
        engine = OCRSpaceEngine(api_key="key", session=session)
        with pytest.raises(RecognizerError):
            engine.recognize(b"")
        session.post.assert_not_called()

    def test_missing_api_key(self):
        with pytest.raises(RecognizerError, match="API key"):
            OCRSpaceEngine(api_key="  ")


class TestEasyOCREngine:
    def test_lines_joined(self, jpeg_bytes):
        reader = MagicMock()
        reader.readtext.return_value = ["KA 51 ", "  ", "AK 4247"]
        engine = EasyOCREngine(reader=reader)

        assert engine.recognize(jpeg_bytes) == "KA 51\nAK 4247"
        image = reader.readtext.call_args.args[0]
        assert image.shape == (24, 32, 3)
        assert reader.readtext.call_args.kwargs["detail"] == 0

    def test_undecodable_bytes(self):
        engine = EasyOCREngine(reader=MagicMock())
        with pytest.raises(RecognizerError, match="decode"):
            engine.recognize(b"not an image")

    def test_unsupported_language(self, jpeg_bytes):
        engine = EasyOCREngine(reader=MagicMock())
        with pytest.raises(RecognizerError, match="language"):
            engine.recognize(jpeg_bytes, language="fra")

    def test_reader_failure_wrapped(self, jpeg_bytes):
        reader = MagicMock()
        reader.readtext.side_effect = RuntimeError("CUDA out of memory")
        engine = EasyOCREngine(reader=reader)
        with pytest.raises(RecognizerError, match="CUDA out of memory"):
            engine.recognize(jpeg_bytes)

    def test_missing_package(self, monkeypatch):
        monkeypatch.setattr(ocr_engine, "_GLOBAL_EASYOCR_READER", None)
        monkeypatch.setitem(sys.modules, "easyocr", None)
        with pytest.raises(RecognizerError, match="not installed"):
            EasyOCREngine().reader

    def test_reader_loaded_once_across_threads(self, monkeypatch):
        created = []

        class SlowReader:
            def __init__(self, langs, gpu=False, verbose=True):
                time.sleep(0.05)
                created.append(self)

        monkeypatch.setattr(ocr_engine, "_GLOBAL_EASYOCR_READER", None)
        monkeypatch.setitem(sys.modules, "easyocr", types.SimpleNamespace(Reader=SlowReader))

        barrier = threading.Barrier(6)
        readers = []

        def load():
            barrier.wait()
            readers.append(EasyOCREngine().reader)

        threads = [threading.Thread(target=load) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert len(readers) == 6
        assert all(r is created[0] for r in readers)


class TestFallbackRecognizer:
    def test_first_success_wins(self, fake_recognizer, recognizer_error):
        failing = fake_recognizer(recognizer_error("quota exceeded"))
        working = fake_recognizer("KA51AK4247")
        fallback = FallbackRecognizer([failing, working])

        assert fallback.recognize(b"data") == "KA51AK4247"
        assert len(failing.calls) == 1
        assert len(working.calls) == 1

    def test_stops_after_success(self, fake_recognizer):
        first = fake_recognizer("text")
        second = fake_recognizer("other")
        assert FallbackRecognizer([first, second]).recognize(b"data") == "text"
        assert second.calls == []

    def test_all_fail(self, fake_recognizer, recognizer_error):
        fallback = FallbackRecognizer([
            fake_recognizer(recognizer_error("down")),
            fake_recognizer(recognizer_error("missing")),
        ])
        with pytest.raises(RecognizerError, match="All recognizers failed"):
            fallback.recognize(b"data")

    def test_needs_engines(self):
        with pytest.raises(ValueError):
            FallbackRecognizer([])


class TestBuildRecognizer:
    def test_auto_with_key(self):
        recognizer = build_recognizer("auto", api_key="key")
        assert isinstance(recognizer, FallbackRecognizer)
        assert recognizer.name == "ocrspace+easyocr"

    def test_auto_without_key(self):
        assert isinstance(build_recognizer("auto", api_key=""), EasyOCREngine)

    def test_explicit_engines(self):
        assert isinstance(build_recognizer("ocrspace", api_key="key"), OCRSpaceEngine)
        assert isinstance(build_recognizer("EasyOCR", api_key=""), EasyOCREngine)

    def test_ocrspace_without_key(self):
        with pytest.raises(RecognizerError):
            build_recognizer("ocrspace", api_key="")

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            build_recognizer("tesseract")

    def test_protocol(self):
        assert isinstance(build_recognizer("auto", api_key="key"), TextRecognizer)
        assert isinstance(build_recognizer("easyocr"), TextRecognizer)
