import pytest

from helpers import make_gradient, make_photo, to_bytes


@pytest.fixture
def gradient():
    return make_gradient(40, 30)


@pytest.fixture
def translucent():
    return make_gradient(32, 24, alpha=True)


@pytest.fixture
def photo():
    return make_photo(320, 240)


@pytest.fixture
def photo_jpeg(photo):
    return to_bytes(photo, "JPEG", quality=95)


@pytest.fixture
def photo_png(photo):
    return to_bytes(photo, "PNG")
