import io

from PIL import Image

from siteqa.services.images import fit_dimensions, resize_if_needed


def _jpeg(width: int, height: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="JPEG")
    return buf.getvalue()


def test_fit_dimensions_keeps_aspect_ratio() -> None:
    assert fit_dimensions(1920, 1080, 7500) == (1920, 1080)
    assert fit_dimensions(1000, 4000, 2000) == (500, 2000)
    assert fit_dimensions(4000, 1000, 2000) == (2000, 500)


def test_resize_if_needed_downscales_tall_screenshots() -> None:
    resized = resize_if_needed(_jpeg(200, 900), quality=70, max_dimension=300)
    with Image.open(io.BytesIO(resized)) as img:
        assert img.format == "JPEG"
        assert img.size == (67, 300)


def test_resize_if_needed_returns_small_images_untouched() -> None:
    original = _jpeg(120, 80)
    assert resize_if_needed(original, max_dimension=300) is original


def test_resize_if_needed_keeps_undecodable_bytes() -> None:
    assert resize_if_needed(b"not an image", max_dimension=10) == b"not an image"
