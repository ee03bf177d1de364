from __future__ import annotations

import json

import pytest

from imagegen.descriptor import BackgroundAttr, ImageAttr, build_descriptor, to_module
from imagegen.errors import SourceUnavailable

SOURCE_SET = [("/a-1.webp", "1x"), ("/a-2.webp", "2x")]


class TestBuildDescriptor:
    def test_image_descriptor(self) -> None:
        descriptor = build_descriptor("a.png", SOURCE_SET)
        assert descriptor == ImageAttr(src="/a-2.webp", srcset="/a-1.webp 1x, /a-2.webp 2x")

    def test_background_descriptor(self) -> None:
        descriptor = build_descriptor("a.png", SOURCE_SET, is_background_image=True)
        assert descriptor == BackgroundAttr(
            src="url(/a-2.webp)",
            image_set="url(/a-1.webp) 1x, url(/a-2.webp) 2x",
        )

    def test_empty_condition_is_dropped(self) -> None:
        descriptor = build_descriptor("a.png", [("/a.png", "")])
        assert descriptor.srcset == "/a.png"

    def test_dimensions_attached(self) -> None:
        descriptor = build_descriptor("a.png", SOURCE_SET, width=800, height=600)
        assert (descriptor.width, descriptor.height) == (800, 600)

    def test_missing_source_raises(self) -> None:
        with pytest.raises(SourceUnavailable):
            build_descriptor("a.png", [])
        with pytest.raises(SourceUnavailable):
            build_descriptor("a.png", [("/a-1.webp", "1x"), ("", "2x")])


class TestToModule:
    def test_image_module(self) -> None:
        source = to_module(ImageAttr(src="/a.webp", srcset="/a.webp 1x"))
        assert source.startswith("export default ")
        payload = json.loads(source[len("export default "):].rstrip().rstrip(";"))
        assert payload == {"_type": "img", "src": "/a.webp", "srcset": "/a.webp 1x"}

    def test_background_module_uses_image_set_key(self) -> None:
        source = to_module(BackgroundAttr(src="url(/a.webp)", image_set="url(/a.webp) 1x"))
        payload = json.loads(source[len("export default "):].rstrip().rstrip(";"))
        assert payload == {"_type": "bg", "src": "url(/a.webp)", "imageSet": "url(/a.webp) 1x"}
