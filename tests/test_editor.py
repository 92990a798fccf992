import random

import pytest

from snap_crop_tool.editor import (
    KEY_CLEAR, KEY_RESIZE, Drawing, Idle, Moving, RectangleEditor, Resizing,
)
from snap_crop_tool.models import CropRect
from snap_crop_tool.snapping import SnapSettings


def _box(rect: CropRect):
    return pytest.approx((rect.x, rect.y, rect.w, rect.h))


# =============================================================================
# Drawing
# =============================================================================
def test_draw_commits_rectangle_above_threshold(editor, draw):
    draw(editor, 100, 100, 110, 110)
    assert editor.selections == [CropRect(100, 100, 10, 10)]
    assert isinstance(editor.state, Idle)


def test_draw_below_threshold_is_discarded(editor, draw):
    draw(editor, 100, 100, 103, 110)
    assert editor.selections == []


def test_draw_preview_is_not_committed_until_release(editor):
    editor.on_pointer_down(100, 100)
    editor.on_pointer_move(150, 160)
    assert isinstance(editor.state, Drawing)
    assert editor.live_rect == CropRect(100, 100, 50, 60)
    assert editor.selections == []

    editor.on_pointer_up(150, 160)
    assert editor.live_rect is None
    assert len(editor.selections) == 1


def test_draw_towards_top_left_keeps_start_as_corner(editor, draw):
    draw(editor, 200, 200, 150, 170)
    assert (editor.selections[0].x, editor.selections[0].y) == (150, 170)
    assert (editor.selections[0].w, editor.selections[0].h) == (50, 30)


def test_draw_is_clamped_to_image(editor, draw):
    draw(editor, 990, 990, 1500, 1500)
    assert editor.selections == [CropRect(990, 990, 10, 10)]


def test_draw_maps_screen_to_image_pixels(draw):
    ed = RectangleEditor(SnapSettings(strength=0.0))
    ed.set_image_size(1000, 1000)
    ed.set_display_box(100, 50, 500, 500)
    draw(ed, 150, 100, 200, 150)
    assert ed.selections == [CropRect(100, 100, 100, 100)]


def test_draw_snaps_to_bucket():
    ed = RectangleEditor(SnapSettings(snap_resolution=True, buckets=[512],
                                      aspect_ratios=[1.0], strength=1.0))
    ed.set_image_size(2000, 2000)
    ed.set_display_box(0, 0, 2000, 2000)
    ed.on_pointer_down(100, 100)
    ed.on_pointer_up(600, 620)
    assert ed.selections == [CropRect(100, 100, 512, 512)]


def test_pointer_down_outside_image_does_not_draw():
    ed = RectangleEditor(SnapSettings(strength=0.0))
    ed.set_image_size(1000, 1000)
    ed.set_display_box(100, 50, 500, 500)
    assert not ed.on_pointer_down(50, 50)
    assert isinstance(ed.state, Idle)


def test_no_interaction_without_image():
    ed = RectangleEditor()
    assert not ed.on_pointer_down(10, 10)


def test_busy_editor_refuses_new_interactions(editor):
    editor.busy = True
    assert not editor.on_pointer_down(100, 100)
    assert isinstance(editor.state, Idle)


def test_only_one_interaction_at_a_time(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_pointer_down(300, 300)
    assert not editor.on_pointer_down(120, 120, move_modifier=True)
    assert isinstance(editor.state, Drawing)


# =============================================================================
# Moving
# =============================================================================
def test_move_updates_rectangle_immediately(editor, draw):
    draw(editor, 100, 100, 150, 150)
    assert editor.on_pointer_down(120, 120, move_modifier=True)
    assert isinstance(editor.state, Moving)

    editor.on_pointer_move(170, 140)
    assert editor.selections[0] == CropRect(150, 120, 50, 50)

    editor.on_pointer_up(170, 140)
    assert isinstance(editor.state, Idle)
    assert editor.selections[0] == CropRect(150, 120, 50, 50)


def test_move_is_clamped_without_resizing(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_pointer_down(120, 120, move_modifier=True)
    editor.on_pointer_move(5000, 5000)
    assert editor.selections[0] == CropRect(950, 950, 50, 50)


def test_move_modifier_off_rectangle_starts_nothing(editor, draw):
    draw(editor, 100, 100, 150, 150)
    assert not editor.on_pointer_down(500, 500, move_modifier=True)
    assert isinstance(editor.state, Idle)


def test_move_picks_topmost_overlapping_rectangle(editor, draw):
    draw(editor, 100, 100, 200, 200)
    draw(editor, 150, 150, 250, 250)
    editor.on_pointer_down(175, 175, move_modifier=True)
    assert editor.state.index == 1


# =============================================================================
# Resizing
# =============================================================================
def test_resize_requires_modifier(editor, draw):
    draw(editor, 100, 100, 150, 150)
    # Without Alt the press on the corner starts a new drawing instead
    editor.on_pointer_down(150, 150)
    assert isinstance(editor.state, Drawing)


def test_resize_corner_keeps_opposite_corner(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_key_down(KEY_RESIZE)
    assert editor.on_pointer_down(150, 150)
    assert isinstance(editor.state, Resizing)
    assert editor.state.handle == "bottomright"
    assert editor.state.anchor == (100, 100)

    editor.on_pointer_move(180, 170)
    assert editor.selections[0] == CropRect(100, 100, 80, 70)


def test_releasing_modifier_ends_resize_without_rollback(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_key_down(KEY_RESIZE)
    editor.on_pointer_down(150, 150)
    editor.on_pointer_move(180, 170)

    editor.on_key_up(KEY_RESIZE)
    assert isinstance(editor.state, Idle)
    assert not editor.resize_mode
    assert editor.selections[0] == CropRect(100, 100, 80, 70)


def test_resize_press_off_handle_does_nothing(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_key_down(KEY_RESIZE)
    assert not editor.on_pointer_down(500, 500)
    assert isinstance(editor.state, Idle)
    assert len(editor.selections) == 1


def test_corner_resize_preserves_anchor_for_any_deltas():
    ed = RectangleEditor(SnapSettings(snap_resolution=True, snap_aspect=True,
                                      buckets=[128, 256], strength=1.0))
    ed.set_image_size(1000, 1000)
    ed.set_display_box(0, 0, 1000, 1000)
    ed.on_pointer_down(100, 100)
    ed.on_pointer_up(300, 300)
    right, bottom = ed.selections[0].right, ed.selections[0].bottom

    ed.on_key_down(KEY_RESIZE)
    ed.on_pointer_down(ed.selections[0].x, ed.selections[0].y)
    assert ed.state.handle == "topleft"
    for sx, sy in [(50, 60), (-400, -400), (280, 290), (250, 10), (0, 0), (299, 299)]:
        ed.on_pointer_move(sx, sy)
        rect = ed.selections[0]
        assert rect.right == pytest.approx(right)
        assert rect.bottom == pytest.approx(bottom)


def test_edge_resize_keeps_other_dimension_without_snap(editor, draw):
    draw(editor, 100, 100, 300, 300)
    editor.on_key_down(KEY_RESIZE)
    editor.on_pointer_down(300, 200)
    assert editor.state.handle == "right"

    editor.on_pointer_move(350, 260)
    assert editor.selections[0] == CropRect(100, 100, 250, 200)


def test_resize_enforces_minimum_size(editor, draw):
    draw(editor, 100, 100, 300, 300)
    editor.on_key_down(KEY_RESIZE)
    editor.on_pointer_down(300, 300)
    editor.on_pointer_move(0, 0)
    assert (editor.selections[0].w, editor.selections[0].h) == (2, 2)


# =============================================================================
# Deletion / reset / interruption
# =============================================================================
def test_delete_by_index_keeps_order(editor, draw):
    draw(editor, 10, 10, 50, 50)
    draw(editor, 100, 100, 150, 150)
    draw(editor, 200, 200, 250, 250)
    first, _, third = editor.selections

    assert editor.delete(1)
    assert editor.selections == [first, third]
    assert not editor.delete(5)


def test_double_click_deletes_topmost_rectangle(editor, draw):
    draw(editor, 100, 100, 200, 200)
    draw(editor, 150, 150, 250, 250)
    assert editor.on_double_click(175, 175)
    assert editor.selections == [CropRect(100, 100, 100, 100)]
    assert not editor.on_double_click(900, 900)


def test_escape_clears_all_rectangles(editor, draw):
    draw(editor, 100, 100, 200, 200)
    draw(editor, 300, 300, 400, 400)
    editor.on_key_down(KEY_CLEAR)
    assert editor.selections == []


def test_focus_loss_discards_drawing_preview(editor):
    editor.on_pointer_down(100, 100)
    editor.on_pointer_move(200, 200)
    assert editor.on_focus_lost()
    assert editor.live_rect is None
    assert isinstance(editor.state, Idle)
    editor.on_pointer_up(200, 200)
    assert editor.selections == []


def test_focus_loss_drops_resize_mode(editor):
    editor.on_key_down(KEY_RESIZE)
    assert editor.on_focus_lost()
    assert not editor.resize_mode

    # Back in the window with Alt no longer held: a plain drag draws again
    assert editor.on_pointer_down(100, 100)
    assert isinstance(editor.state, Drawing)


def test_resize_modifier_from_pointer_state_starts_resize(editor, draw):
    draw(editor, 100, 100, 150, 150)
    assert editor.set_resize_modifier(True)
    assert not editor.set_resize_modifier(True)
    assert editor.on_pointer_down(150, 150)
    assert isinstance(editor.state, Resizing)

    assert editor.set_resize_modifier(False)
    assert isinstance(editor.state, Idle)


def test_focus_loss_keeps_applied_move(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.on_pointer_down(120, 120, move_modifier=True)
    editor.on_pointer_move(220, 120)
    editor.on_focus_lost()
    assert editor.selections[0] == CropRect(200, 100, 50, 50)


def test_new_image_resets_selections(editor, draw):
    draw(editor, 100, 100, 150, 150)
    editor.set_image_size(640, 480)
    assert editor.selections == []
    assert editor.live_rect is None


def test_active_rect_follows_work(editor, draw):
    assert editor.active_rect is None
    draw(editor, 100, 100, 150, 150)
    assert editor.active_rect == CropRect(100, 100, 50, 50)
    editor.on_pointer_down(400, 400)
    editor.on_pointer_move(500, 450)
    assert editor.active_rect == CropRect(400, 400, 100, 50)


# =============================================================================
# Invariant under random interaction
# =============================================================================
def test_rectangles_stay_inside_image_through_random_edits():
    rng = random.Random(1234)
    ed = RectangleEditor(SnapSettings(snap_resolution=True, snap_aspect=True,
                                      buckets=[256, 512, 1024], strength=1.0))
    ed.set_image_size(800, 600)
    ed.set_display_box(50, 40, 400, 300)
    eps = 1e-9

    def point():
        return rng.uniform(-100, 600), rng.uniform(-100, 500)

    for _ in range(300):
        action = rng.choice(["draw", "move", "resize"])
        if action == "draw":
            ed.on_pointer_down(*point())
            ed.on_pointer_move(*point())
            ed.on_pointer_up(*point())
        elif action == "move" and ed.selections:
            view = ed.mapping.to_view(rng.choice(ed.selections))
            ed.on_pointer_down(view.x + view.w / 2, view.y + view.h / 2, move_modifier=True)
            ed.on_pointer_move(*point())
            ed.on_pointer_up(0, 0)
        elif action == "resize" and ed.selections:
            ed.on_key_down(KEY_RESIZE)
            handles = ed.view_handles(rng.choice(ed.selections))
            ed.on_pointer_down(*rng.choice(list(handles.values())))
            ed.on_pointer_move(*point())
            ed.on_pointer_move(*point())
            ed.on_key_up(KEY_RESIZE)

        for rect in ed.selections:
            assert rect.x >= -eps and rect.y >= -eps
            assert rect.w >= 0 and rect.h >= 0
            assert rect.right <= 800 + eps
            assert rect.bottom <= 600 + eps
