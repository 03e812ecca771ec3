"""
Tests for placing resolved figures into external layouts.
"""

import pytest
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from numpy.testing import assert_allclose

from pysurvplot.core.exceptions import LayoutError
from pysurvplot.plotting import Composition, Panel, place, plot_curves, wrap


DPI = 50


@pytest.fixture
def resolved(two_strata_model):
    return (
        plot_curves(two_strata_model)
        .add_risktable("n.risk")
        .build(figsize=(4, 3), dpi=DPI)
    )


@pytest.fixture
def plain(two_strata_model):
    return plot_curves(two_strata_model).build(figsize=(4, 3), dpi=DPI)


# ═══════════════════════════════════════════════════════════════════════
# place
# ═══════════════════════════════════════════════════════════════════════


class TestPlace:

    def test_image_keeps_pixels_and_aspect(self, resolved):
        host = Figure(figsize=(8, 8), dpi=DPI)
        FigureCanvasAgg(host)
        ax = host.add_subplot(2, 2, 1)
        image = place(resolved, ax)
        assert image.get_array().shape == resolved.to_rgba().shape
        assert ax.get_aspect() == 1.0
        assert not ax.axison

    def test_rasterize_at_other_dpi(self, resolved):
        host = Figure()
        ax = host.add_subplot()
        image = place(resolved, ax, dpi=2 * DPI)
        width, _ = resolved.size_inches
        assert abs(image.get_array().shape[1] - width * 2 * DPI) <= 1
        # the resolved figure keeps its own dpi
        assert resolved.figure.get_dpi() == DPI

    def test_unresolved_assembly_rejected(self, two_strata_model):
        assembly = plot_curves(two_strata_model).add_risktable("n.risk")
        ax = Figure().add_subplot()
        with pytest.raises(LayoutError, match="build"):
            place(assembly, ax)

    def test_other_object_rejected(self):
        with pytest.raises(LayoutError, match="ResolvedFigure"):
            wrap(Figure())


# ═══════════════════════════════════════════════════════════════════════
# Operator composition
# ═══════════════════════════════════════════════════════════════════════


class TestComposition:

    def test_wrap(self, resolved):
        panel = wrap(resolved)
        assert isinstance(panel, Panel)
        assert panel.size_inches == resolved.size_inches

    def test_row_flattens(self, resolved, plain):
        composed = wrap(resolved) | wrap(plain) | wrap(plain)
        assert isinstance(composed, Composition)
        assert composed.direction == "row"
        assert len(composed.items) == 3

    def test_bare_resolved_on_right(self, resolved, plain):
        composed = wrap(resolved) | plain
        assert len(composed.items) == 2
        assert composed.items[1].resolved is plain

    def test_assembly_on_right_rejected(self, resolved, two_strata_model):
        with pytest.raises(LayoutError):
            wrap(resolved) | plot_curves(two_strata_model)

    def test_sizes(self, resolved, plain):
        rw, rh = resolved.size_inches
        pw, ph = plain.size_inches
        row = wrap(resolved) | wrap(plain)
        assert_allclose(row.size_inches, (rw + pw, max(rh, ph)))
        stacked = row / wrap(plain)
        assert stacked.direction == "column"
        assert len(stacked.items) == 2
        assert_allclose(stacked.size_inches, (rw + pw, max(rh, ph) + ph))

    def test_render_places_every_panel(self, resolved, plain):
        composed = (wrap(resolved) | wrap(plain)) / wrap(plain)
        figure = composed.render()
        assert len(figure.axes) == 3
        assert_allclose(figure.get_size_inches(), composed.size_inches)
        assert figure.get_dpi() == DPI

    def test_panels_embedded_as_images(self, resolved, plain, tmp_path):
        composed = wrap(resolved) | wrap(plain)
        figure = composed.render()
        assert [len(ax.images) for ax in figure.axes] == [1, 1]
        assert [len(ax.lines) for ax in figure.axes] == [0, 0]
        path = tmp_path / "composed.pdf"
        composed.save(path)
        assert path.stat().st_size > 0

    def test_first_column_item_on_top(self, plain):
        figure = (wrap(plain) / wrap(plain)).render()
        top, bottom = figure.axes
        assert top.get_position().y0 > bottom.get_position().y0

    def test_save(self, resolved, plain, tmp_path):
        path = tmp_path / "composed.png"
        (wrap(resolved) | wrap(plain)).save(path)
        assert path.stat().st_size > 0


# ═══════════════════════════════════════════════════════════════════════
# ResolvedFigure output
# ═══════════════════════════════════════════════════════════════════════


class TestResolvedOutput:

    @pytest.mark.parametrize("suffix", ["png", "pdf", "svg"])
    def test_save_formats(self, resolved, tmp_path, suffix):
        path = tmp_path / f"figure.{suffix}"
        resolved.save(path)
        assert path.stat().st_size > 0

    def test_save_size_is_restored(self, resolved, tmp_path):
        before = resolved.size_inches
        resolved.save(tmp_path / "big.png", size=(8, 9))
        assert resolved.size_inches == before

    def test_to_rgba_shape(self, resolved):
        width, height = resolved.size_inches
        pixels = resolved.to_rgba()
        assert pixels.shape[2] == 4
        assert abs(pixels.shape[0] - height * DPI) <= 1
        assert abs(pixels.shape[1] - width * DPI) <= 1

    def test_repr(self, resolved):
        assert "risk_tables=1" in repr(resolved)
        assert resolved.n_panels == 2
