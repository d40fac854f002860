from unittest.mock import MagicMock

import numpy as np

from shadowdots.display import CanvasPresenter


def make_presenter():
    ctx = MagicMock()
    ctx.texture.side_effect = lambda *a, **k: MagicMock()
    return ctx, CanvasPresenter(ctx)


def test_present_uploads_canvas_and_draws():
    ctx, presenter = make_presenter()
    canvas = np.zeros((48, 64, 4), np.uint8)
    presenter.present(canvas, (64, 48), mirrored=True)

    ctx.texture.assert_called_once_with((64, 48), 4, dtype="f1")
    presenter.tex.write.assert_called_once_with(canvas.tobytes())
    assert ctx.viewport == (0, 0, 64, 48)
    assert presenter.prog["mirror"].value == 1
    presenter.vao.render.assert_called_once()


def test_texture_is_reused_until_size_changes():
    ctx, presenter = make_presenter()
    presenter.present(np.zeros((48, 64, 4), np.uint8), (64, 48), False)
    first = presenter.tex
    presenter.present(np.zeros((48, 64, 4), np.uint8), (64, 48), False)
    assert presenter.tex is first
    presenter.present(np.zeros((20, 30, 4), np.uint8), (30, 20), False)
    assert presenter.tex is not first
    first.release.assert_called_once()
    assert ctx.texture.call_count == 2


def test_empty_canvas_just_clears():
    ctx, presenter = make_presenter()
    presenter.present(np.zeros((0, 0, 4), np.uint8), (0, 0), True)
    ctx.clear.assert_called_once()
    ctx.texture.assert_not_called()


def test_release_frees_texture_and_program():
    ctx, presenter = make_presenter()
    presenter.present(np.zeros((4, 4, 4), np.uint8), (4, 4), False)
    tex = presenter.tex
    presenter.release()
    tex.release.assert_called_once()
    presenter.vao.release.assert_called_once()
    presenter.prog.release.assert_called_once()
    assert presenter.tex is None
