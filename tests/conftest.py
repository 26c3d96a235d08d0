"""Shared test configuration and fixtures for the memeforge test suite."""

import logging
import os
from unittest.mock import MagicMock

import pytest
from PIL import Image, ImageDraw

from memeforge.config import CacheConfig
from memeforge.models import Area, Macro, Template, TextLine


@pytest.fixture
def data_dir(tmp_path):
    """Provide an empty data directory for a cache."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def cache_config(data_dir):
    """Provide a cache configuration rooted at the test data directory."""
    return CacheConfig(data_dir=str(data_dir), max_workers=2)


@pytest.fixture
def mock_logger():
    """Provide a mock logger for testing."""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.debug = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.trace = MagicMock()
    return logger


def _still_image(size=(160, 120)):
    """A deterministic gradient with a rectangle, so encoders have detail to keep."""
    width, height = size
    image = Image.new('RGB', size)
    pixels = image.load()
    for y in range(height):
        for x in range(width):
            pixels[x, y] = (x * 255 // width, y * 255 // height, 96)
    ImageDraw.Draw(image).rectangle((10, 10, 40, 30), fill=(20, 160, 20))
    return image


@pytest.fixture
def still_image():
    """Provide a 160x120 RGB template image."""
    return _still_image()


@pytest.fixture
def png_template(data_dir):
    """Write a PNG template and return its Template record."""
    path = data_dir / "template.png"
    _still_image().save(path, format='PNG')
    return Template(id=1, path=str(path), width=160, height=120, name="gradient")


@pytest.fixture
def jpeg_template(data_dir):
    """Write a JPEG template and return its Template record."""
    path = data_dir / "template.jpg"
    _still_image().save(path, format='JPEG', quality=95)
    return Template(id=2, path=str(path), width=160, height=120, name="gradient-jpeg")


@pytest.fixture
def make_gif():
    """Factory writing a GIF whose frames are solid colors.

    Returns a function (path, colors, size=(64, 48), duration=80, disposal=1)
    that writes the GIF and returns path.
    """
    def _make(path, colors, size=(64, 48), duration=80, disposal=1, loop=0):
        frames = [Image.new('RGB', size, color) for color in colors]
        frames[0].save(path, format='GIF', save_all=True, append_images=frames[1:],
                       duration=duration, disposal=disposal, loop=loop)
        return path
    return _make


@pytest.fixture
def gif_template(data_dir, make_gif):
    """Write a four-frame GIF template and return its Template record."""
    path = data_dir / "template.gif"
    make_gif(path, [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)], size=(96, 72))
    return Template(id=3, path=str(path), width=96, height=72, name="flashing")


@pytest.fixture
def sample_line():
    """Provide a single-area text line near the top of the image."""
    return TextLine(text="hello world", field=(Area(x=0.5, y=0.2, width=0.9),))


@pytest.fixture
def sample_macro(sample_line):
    """Provide a macro with one top and one bottom text line."""
    bottom = TextLine(text="bottom text", field=(Area(x=0.5, y=0.8),))
    return Macro(id=7, template_id=1, text_overlay=(sample_line, bottom))


@pytest.fixture
def template_resolver():
    """Factory for a template lookup over a fixed set of templates."""
    from memeforge.errors import TemplateNotFoundError

    def _make(*templates):
        by_id = {t.id: t for t in templates}

        def resolve(template_id):
            if template_id not in by_id:
                raise TemplateNotFoundError(f"template {template_id} not found")
            return by_id[template_id]
        return resolve
    return _make


@pytest.fixture
def disable_logging():
    """Disable logging for tests that don't need it."""
    logging.disable(logging.CRITICAL)
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def environment_variables():
    """Provide a clean MEMEFORGE_* environment, restored afterwards."""
    original_env = os.environ.copy()
    for key in list(os.environ):
        if key.startswith('MEMEFORGE_'):
            del os.environ[key]

    yield os.environ

    os.environ.clear()
    os.environ.update(original_env)


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# Test collection configuration
def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test location."""
    for item in items:
        # Add unit marker to all tests in unit directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Add integration marker to tests in integration directory
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)

        # Add slow marker to tests that take longer
        if "concurrent" in item.name or "stress" in item.name:
            item.add_marker(pytest.mark.slow)


# Cleanup fixture for global state
@pytest.fixture(autouse=True)
def cleanup_global_state():
    """Automatically remove handlers installed by setup_logging after each test."""
    yield

    from memeforge import logging_utils
    root_logger = logging.getLogger()
    for handler in logging_utils._installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    logging_utils._installed_handlers.clear()
    root_logger.setLevel(logging.WARNING)
