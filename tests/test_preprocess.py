"""
Tests for letterbox preprocessing.
"""

import numpy as np
import pytest

from models.errors import InvalidFrame
from models.frame import Frame
from preprocessing.letterbox import LetterboxTransform, preprocess, to_rgb


class TestLetterboxTransform:
    def test_square_frame_has_unit_ratios(self):
        t = LetterboxTransform.from_size(640, 640)
        assert t.x_ratio == 1.0
        assert t.y_ratio == 1.0
        assert t.x_pad == 0
        assert t.y_pad == 0

    def test_landscape_frame(self):
        t = LetterboxTransform.from_size(1280, 720)
        assert t.x_ratio == 1.0
        assert t.y_ratio == pytest.approx(1280 / 720)
        assert t.x_pad == 0
        assert t.y_pad == 560

    def test_portrait_frame(self):
        t = LetterboxTransform.from_size(300, 600)
        assert t.x_ratio == 2.0
        assert t.y_ratio == 1.0
        assert t.x_pad == 300

    @pytest.mark.parametrize("width,height", [(1, 1), (17, 5), (5, 17), (640, 480), (333, 334), (1920, 1080)])
    def test_ratios_at_least_one_and_longer_side_unit(self, width, height):
        t = LetterboxTransform.from_size(width, height)
        assert t.x_ratio >= 1.0
        assert t.y_ratio >= 1.0
        if width == height:
            assert t.x_ratio == t.y_ratio == 1.0
        else:
            assert (t.x_ratio == 1.0) != (t.y_ratio == 1.0)


class TestPreprocess:
    def test_output_shape_and_range(self, make_frame):
        frame = make_frame(width=100, height=60, value=200)
        tensor, transform = preprocess(frame, 64, 64)

        assert tensor.shape == (1, 3, 64, 64)
        assert tensor.dtype == np.float32
        assert tensor.min() >= 0.0
        assert tensor.max() <= 1.0
        assert transform.x_ratio == 1.0
        assert transform.y_ratio == pytest.approx(100 / 60)

    def test_pads_bottom_with_zeros(self, make_frame):
        frame = make_frame(width=64, height=32, value=255)
        tensor, _ = preprocess(frame, 64, 64)

        assert np.allclose(tensor[0, :, :32, :], 1.0)
        assert np.allclose(tensor[0, :, 32:, :], 0.0)

    def test_pads_right_with_zeros(self, make_frame):
        frame = make_frame(width=16, height=64, value=255)
        tensor, transform = preprocess(frame, 64, 64)

        assert transform.x_ratio == 4.0
        assert np.allclose(tensor[0, :, :, :16], 1.0)
        assert np.allclose(tensor[0, :, :, 16:], 0.0)

    def test_rgba_input_is_rgb_planar(self):
        pixels = np.zeros((8, 8, 4), dtype=np.uint8)
        pixels[..., 0] = 255  # red
        pixels[..., 3] = 255  # opaque
        frame = Frame.from_numpy(pixels, channel_order="RGBA")

        tensor, _ = preprocess(frame, 8, 8)

        assert np.allclose(tensor[0, 0], 1.0)
        assert np.allclose(tensor[0, 1], 0.0)
        assert np.allclose(tensor[0, 2], 0.0)

    def test_bgr_input_is_converted_to_rgb(self):
        pixels = np.zeros((8, 8, 3), dtype=np.uint8)
        pixels[..., 2] = 255  # red in BGR
        frame = Frame.from_numpy(pixels, channel_order="BGR")

        tensor, _ = preprocess(frame, 8, 8)

        assert np.allclose(tensor[0, 0], 1.0)
        assert np.allclose(tensor[0, 2], 0.0)

    def test_gray_input(self, make_frame):
        frame = make_frame(width=8, height=8, channel_order="GRAY", value=51)
        tensor, _ = preprocess(frame, 8, 8)
        assert np.allclose(tensor, 51 / 255.0, atol=1e-6)

    def test_scales_down_large_frames(self, make_frame):
        frame = make_frame(width=256, height=128, value=255)
        tensor, transform = preprocess(frame, 64, 64)

        assert tensor.shape == (1, 3, 64, 64)
        assert transform.y_ratio == 2.0
        assert np.allclose(tensor[0, :, :31, :], 1.0)
        assert np.allclose(tensor[0, :, 33:, :], 0.0)

    def test_does_not_modify_frame(self, make_frame):
        frame = make_frame(width=10, height=20, value=7)
        before = frame.pixels.copy()
        preprocess(frame, 32, 32)
        assert np.array_equal(frame.pixels, before)


class TestInvalidFrames:
    def test_zero_height(self):
        frame = Frame.from_numpy(np.zeros((0, 10, 3), dtype=np.uint8))
        with pytest.raises(InvalidFrame):
            preprocess(frame, 64, 64)

    def test_zero_width(self):
        frame = Frame(pixels=np.zeros((10, 0, 3), dtype=np.uint8), width=0, height=10)
        with pytest.raises(InvalidFrame):
            preprocess(frame, 64, 64)

    def test_size_mismatch(self):
        frame = Frame(pixels=np.zeros((10, 10, 3), dtype=np.uint8), width=20, height=10)
        with pytest.raises(InvalidFrame, match="does not match"):
            preprocess(frame, 64, 64)

    def test_wrong_channel_count(self):
        frame = Frame.from_numpy(np.zeros((10, 10, 3), dtype=np.uint8), channel_order="RGBA")
        with pytest.raises(InvalidFrame, match="channels"):
            preprocess(frame, 64, 64)

    def test_unknown_channel_order(self):
        frame = Frame.from_numpy(np.zeros((10, 10, 3), dtype=np.uint8), channel_order="YUV")
        with pytest.raises(InvalidFrame, match="channel order"):
            preprocess(frame, 64, 64)

    def test_non_uint8_pixels(self):
        frame = Frame.from_numpy(np.zeros((10, 10, 3), dtype=np.float32))
        with pytest.raises(InvalidFrame, match="uint8"):
            preprocess(frame, 64, 64)


def test_to_rgb_passthrough_for_rgb(make_frame):
    frame = make_frame(channel_order="RGB", value=3)
    assert to_rgb(frame) is frame.pixels
