import pytest

from compression.quality_compressor import QualityCompressor
from compression.target_size import TargetSizeSearch
from edit_spec import CropRect, EditSpec, Filters, FlipDirection, ImageFormat, TargetFileSize
from errors import DecodeError, InvalidSpec
from processors.pipeline import ImageConverter, apply_edits, convert_and_compress_image
from utils.codec import decode, detect_format

from helpers import make_gradient, to_bytes


@pytest.fixture
def converter():
    return ImageConverter()


@pytest.fixture
def compress_calls(monkeypatch):
    """Record calls to the quality compressor without changing its behaviour."""
    calls = []
    original = QualityCompressor.compress

    def recording(self, *args, **kwargs):
        calls.append((args, kwargs))
        return original(self, *args, **kwargs)

    monkeypatch.setattr(QualityCompressor, "compress", recording)
    return calls


def test_quality_path_runs_compression_once(converter, photo_jpeg, compress_calls, monkeypatch):
    def no_search(*args, **kwargs):
        raise AssertionError("target size search must not run")

    monkeypatch.setattr(TargetSizeSearch, "search", no_search)

    result = converter.convert(photo_jpeg, EditSpec(format=ImageFormat.WEBP, quality=80))
    assert len(compress_calls) == 1
    assert result.format is ImageFormat.WEBP
    assert detect_format(result.data) is ImageFormat.WEBP
    assert (result.width, result.height) == (320, 240)


def test_target_size_path(converter, photo_jpeg, compress_calls):
    target = TargetFileSize(enabled=True, size=8)
    result = converter.convert(photo_jpeg, EditSpec(format=ImageFormat.JPEG, target_file_size=target))

    assert result.size <= 8 * 1024
    assert compress_calls == []
    assert detect_format(result.data) is ImageFormat.JPEG


def test_disabled_target_falls_back_to_quality(converter, photo_png, compress_calls):
    spec = EditSpec(quality=70, target_file_size=TargetFileSize(enabled=False, size=1))
    converter.convert(photo_png, spec)
    assert len(compress_calls) == 1


def test_passthrough_returns_source_bytes(converter, photo_png):
    result = converter.convert(photo_png, EditSpec(format=ImageFormat.PNG, quality=100))
    assert result.data == photo_png
    assert result.format is ImageFormat.PNG


def test_lossless_conversion_keeps_pixels(converter, gradient):
    source = to_bytes(gradient, "PNG")
    result = converter.convert(source, EditSpec(format=ImageFormat.TIFF, quality=100))
    assert detect_format(result.data) is ImageFormat.TIFF
    assert decode(result.data) == gradient


def test_edits_disable_passthrough(converter, gradient):
    source = to_bytes(gradient, "PNG")
    spec = EditSpec(format=ImageFormat.PNG, quality=100, flip=FlipDirection.HORIZONTAL)
    result = converter.convert(source, spec)
    assert result.data != source
    assert decode(result.data) != gradient


def test_crop_uses_rotated_coordinates(converter, gradient):
    source = to_bytes(gradient, "PNG")
    # 40x30 becomes 30x40 before the crop
    spec = EditSpec(format=ImageFormat.PNG, quality=100, rotate=90, crop=CropRect(0, 10, 30, 30))
    result = converter.convert(source, spec)
    assert (result.width, result.height) == (30, 30)


def test_crop_outside_rotated_image_fails(converter, gradient):
    source = to_bytes(gradient, "PNG")
    spec = EditSpec(format=ImageFormat.PNG, quality=100, rotate=90, crop=CropRect(0, 0, 40, 30))
    with pytest.raises(InvalidSpec) as info:
        converter.convert(source, spec)
    assert info.value.parameter == "crop"


def test_garbage_input_fails_to_decode(converter):
    with pytest.raises(DecodeError):
        converter.convert(b"not an image", EditSpec())


def test_apply_edits_records_steps_in_order(gradient):
    spec = EditSpec(
        filters=Filters(brightness=10),
        rotate=180,
        flip=FlipDirection.VERTICAL,
        crop=CropRect(0, 0, 20, 20),
        max_width=10,
    )
    outcome = apply_edits(gradient, spec)
    assert outcome.steps == ["filters", "rotate", "flip", "crop", "resize"]
    assert outcome.buffer.size == (10, 10)


def test_apply_edits_without_edits_keeps_buffer(gradient):
    outcome = apply_edits(gradient, EditSpec())
    assert outcome.steps == []
    assert outcome.buffer is gradient


def test_fit_bound_within_image_is_not_a_step(gradient):
    outcome = apply_edits(gradient, EditSpec(max_width=100))
    assert outcome.steps == []


def test_resize_applies_after_rotation():
    buffer = make_gradient(400, 300)
    outcome = apply_edits(buffer, EditSpec(rotate=90, max_height=200))
    assert outcome.buffer.size == (150, 200)


def test_convenience_function_accepts_config(photo_jpeg):
    config = {"quality_compression": {"default_max_dimension": 100}}
    result = convert_and_compress_image(photo_jpeg, EditSpec(quality=60), config)
    assert (result.width, result.height) == (100, 75)
    assert result.filename_for("holiday.png") == "holiday.jpg"


def test_neutral_filters_are_not_a_step(gradient):
    spec = EditSpec(filters=Filters(brightness=0, contrast=0, blur=0, grayscale=False))
    outcome = apply_edits(gradient, spec)
    assert outcome.steps == []
    assert outcome.buffer is gradient


def test_neutral_filters_keep_passthrough(converter, photo_png):
    spec = EditSpec(format=ImageFormat.PNG, quality=100, filters=Filters(brightness=0, saturation=0))
    assert converter.convert(photo_png, spec).data == photo_png
