import base64
import io

import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo


def png_bytes(size=(8, 8), color=(200, 40, 40), fmt='PNG'):
    img = Image.new('RGB', size, color)
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def write_kpp(path, preset_xml=None, extra_tags=None):
    """Write a .kpp-shaped PNG: a tiny thumbnail plus zTXt preset chunk"""
    info = PngInfo()
    if preset_xml is not None:
        info.add_text('preset', preset_xml, zip=True)
    for key, val in (extra_tags or {}).items():
        info.add_text(key, val)
    Image.new('RGBA', (4, 4), (0, 0, 0, 255)).save(path, format='PNG', pnginfo=info)
    return path


@pytest.fixture
def make_kpp(tmp_path):
    input_dir = tmp_path / 'kpp'
    input_dir.mkdir()

    def _make(name, preset_xml=None, extra_tags=None):
        return write_kpp(input_dir / name, preset_xml, extra_tags)

    _make.dir = input_dir
    return _make


@pytest.fixture
def pattern_png():
    return png_bytes()


@pytest.fixture
def pattern_b64(pattern_png):
    return base64.b64encode(pattern_png).decode('ascii')
