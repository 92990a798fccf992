import pytest
from PIL import Image

from snap_crop_tool.editor import RectangleEditor
from snap_crop_tool.snapping import SnapSettings


def no_snap() -> SnapSettings:
    return SnapSettings(strength=0.0)


@pytest.fixture
def editor():
    """1000 × 1000 image displayed 1:1 at the widget origin, snapping off."""
    ed = RectangleEditor(no_snap())
    ed.set_image_size(1000, 1000)
    ed.set_display_box(0, 0, 1000, 1000)
    return ed


@pytest.fixture
def draw():
    def _draw(ed: RectangleEditor, x0, y0, x1, y1):
        ed.on_pointer_down(x0, y0)
        ed.on_pointer_move(x1, y1)
        ed.on_pointer_up(x1, y1)
    return _draw


@pytest.fixture
def make_image(tmp_path):
    def _make(name: str, size=(100, 80), color=(255, 0, 0), folder=None):
        directory = folder or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        Image.new("RGB", size, color).save(path)
        return path
    return _make
