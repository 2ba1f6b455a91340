import pytest

import qrsticker_engine.config
import qrsticker_engine.errors
import qrsticker_engine.layout


PAGE_4X6 = qrsticker_engine.config.get_page_size("4x6")
PAGE_A4 = qrsticker_engine.config.get_page_size("A4")
DEFAULT_MARGINS = qrsticker_engine.config.Margins()
NO_MARGINS = qrsticker_engine.config.Margins(horizontal=0.0, vertical=0.0)
STICKER_100X50 = qrsticker_engine.config.StickerSize(100.0, 50.0)


#============================================
def assert_on_page(plan: qrsticker_engine.layout.LayoutPlan) -> None:
	"""
	Every placement lies inside the page and on a valid page index.
	"""
	for placement in plan.placements:
		assert 0 <= placement.page < plan.page_count
		assert placement.x >= 0.0
		assert placement.y >= 0.0
		assert placement.x + placement.width <= plan.page.width + 1e-6
		assert placement.y + placement.height <= plan.page.height + 1e-6


#============================================
def test_default_margins() -> None:
	"""
	Default margins are 0mm horizontal and 2mm vertical.
	"""
	assert DEFAULT_MARGINS.horizontal == 0.0
	assert DEFAULT_MARGINS.vertical == 2.0
	assert qrsticker_engine.config.BUFFER_MM == 2.0


#============================================
def test_4x6_forces_rotation() -> None:
	"""
	A 100x50 sticker on a 4x6 page only fits turned, one per page.
	"""
	fit = qrsticker_engine.layout.validate_fit(STICKER_100X50, PAGE_4X6, DEFAULT_MARGINS)
	assert fit.fits
	assert fit.rotated
	assert (fit.footprint.width, fit.footprint.height) == (50.0, 100.0)

	plan = qrsticker_engine.layout.plan_auto_fit([1, 2, 3], STICKER_100X50, PAGE_4X6, DEFAULT_MARGINS)
	assert (plan.grid.columns, plan.grid.rows) == (1, 1)
	assert plan.page_count == 3
	assert [placement.page for placement in plan.placements] == [0, 1, 2]
	assert all(placement.rotated for placement in plan.placements)
	first = plan.placements[0]
	assert (first.width, first.height) == (50.0, 100.0)
	assert first.x == pytest.approx(25.8)
	assert first.y == pytest.approx(26.2)
	assert_on_page(plan)


#============================================
def test_small_square_fits_without_rotation() -> None:
	"""
	A 50x50 sticker fits any page with at least 54x54 usable area.
	"""
	sticker = qrsticker_engine.config.StickerSize(50.0, 50.0)
	page = qrsticker_engine.config.PageSize("square", 54.0, 54.0)
	fit = qrsticker_engine.layout.validate_fit(sticker, page, NO_MARGINS)
	assert fit.fits
	assert not fit.rotated

	margined_page = qrsticker_engine.config.PageSize("square", 58.0, 58.0)
	margins = qrsticker_engine.config.Margins(horizontal=2.0, vertical=2.0)
	fit = qrsticker_engine.layout.validate_fit(sticker, margined_page, margins)
	assert fit.fits
	assert not fit.rotated
	assert (fit.usable_width, fit.usable_height) == (54.0, 54.0)


#============================================
def test_no_rotation_when_unrotated_fits() -> None:
	"""
	Orientation stays as designed even when turning would pack more.
	"""
	sticker = qrsticker_engine.config.StickerSize(60.0, 30.0)
	page = qrsticker_engine.config.get_page_size("A6")
	plan = qrsticker_engine.layout.plan_auto_fit(list(range(6)), sticker, page, NO_MARGINS)
	assert not any(placement.rotated for placement in plan.placements)
	assert (plan.grid.columns, plan.grid.rows) == (1, 4)
	assert plan.page_count == 2


#============================================
def test_a4_grid_spans_pages() -> None:
	"""
	23 stickers at 10 per A4 page need 3 pages, filled row by row.
	"""
	plan = qrsticker_engine.layout.plan_auto_fit(list(range(23)), STICKER_100X50, PAGE_A4, DEFAULT_MARGINS)
	assert (plan.grid.columns, plan.grid.rows) == (2, 5)
	assert plan.grid.stickers_per_page == 10
	assert plan.page_count == 3
	assert len(plan.placements_for_page(2)) == 3
	assert not any(placement.rotated for placement in plan.placements)

	first, second, third = plan.placements[0:3]
	assert (first.row, first.column) == (0, 0)
	assert (second.row, second.column) == (0, 1)
	assert (third.row, third.column) == (1, 0)
	assert first.x == pytest.approx(10.0 / 3.0)
	assert second.x == pytest.approx(10.0 / 3.0 * 2.0 + 100.0)
	assert first.y == pytest.approx(2.0 + 43.0 / 6.0)
	assert plan.placements[10].page == 1
	assert (plan.placements[10].row, plan.placements[10].column) == (0, 0)
	assert_on_page(plan)


#============================================
def test_one_per_page_centers() -> None:
	"""
	One-per-page centers each sticker and uses one page per device.
	"""
	plan = qrsticker_engine.layout.plan_one_per_page(["a", "b", "c"], STICKER_100X50, PAGE_A4, DEFAULT_MARGINS)
	assert plan.page_count == 3
	assert [placement.device_ref for placement in plan.placements] == ["a", "b", "c"]
	for placement in plan.placements:
		assert placement.x == pytest.approx(55.0)
		assert placement.y == pytest.approx(123.5)
		assert not placement.rotated
	assert_on_page(plan)


#============================================
def test_one_per_page_rotates_when_needed() -> None:
	"""
	One-per-page applies the same rotation rule.
	"""
	plan = qrsticker_engine.layout.plan_one_per_page([1, 2], STICKER_100X50, PAGE_4X6, DEFAULT_MARGINS)
	assert plan.page_count == 2
	assert all(placement.rotated for placement in plan.placements)
	assert plan.placements[0].x == pytest.approx(25.8)
	assert plan.placements[0].y == pytest.approx(26.2)


#============================================
def test_oversized_sticker_fails_before_planning() -> None:
	"""
	A sticker that fits no orientation raises StickerFitError.
	"""
	sticker = qrsticker_engine.config.StickerSize(300.0, 220.0)
	fit = qrsticker_engine.layout.validate_fit(sticker, PAGE_A4, DEFAULT_MARGINS)
	assert not fit.fits
	assert not fit.rotated

	with pytest.raises(qrsticker_engine.errors.StickerFitError) as excinfo:
		qrsticker_engine.layout.plan_auto_fit([1], sticker, PAGE_A4, DEFAULT_MARGINS)
	assert excinfo.value.sticker_width == 300.0
	assert excinfo.value.usable_height == pytest.approx(293.0)
	assert excinfo.value.page_name == "A4"
	with pytest.raises(qrsticker_engine.errors.StickerFitError):
		qrsticker_engine.layout.plan_one_per_page([1], sticker, PAGE_A4, DEFAULT_MARGINS)


#============================================
def test_compute_grid_minimum_one_cell() -> None:
	"""
	The grid never has fewer than one column or row.
	"""
	sticker = qrsticker_engine.config.StickerSize(101.0, 150.0)
	grid = qrsticker_engine.layout.compute_grid(sticker, PAGE_4X6, NO_MARGINS)
	assert (grid.columns, grid.rows) == (1, 1)


#============================================
def test_empty_device_list() -> None:
	"""
	No devices means no pages, but the fit is still checked.
	"""
	plan = qrsticker_engine.layout.plan_auto_fit([], STICKER_100X50, PAGE_A4, DEFAULT_MARGINS)
	assert plan.page_count == 0
	assert plan.placements == []
	with pytest.raises(qrsticker_engine.errors.StickerFitError):
		qrsticker_engine.layout.plan_auto_fit([], qrsticker_engine.config.StickerSize(400.0, 400.0), PAGE_A4, DEFAULT_MARGINS)


#============================================
def test_invalid_sizes_and_layouts() -> None:
	"""
	Non-positive sizes, unknown pages and unknown layouts are rejected.
	"""
	with pytest.raises(ValueError):
		qrsticker_engine.layout.validate_fit(qrsticker_engine.config.StickerSize(0.0, 10.0), PAGE_A4, DEFAULT_MARGINS)
	with pytest.raises(ValueError):
		qrsticker_engine.config.get_page_size("B5")
	assert qrsticker_engine.config.get_page_size("letter").name == "Letter"
	with pytest.raises(ValueError):
		qrsticker_engine.layout.plan_layout([1], STICKER_100X50, PAGE_A4, DEFAULT_MARGINS, layout="spiral")


#============================================
def test_plan_groups_mixed_sizes() -> None:
	"""
	Each sticker size starts on a fresh page; pages number straight through.
	"""
	small = qrsticker_engine.config.StickerSize(60.0, 40.0)
	stickers = [(1, STICKER_100X50), (2, small), (3, STICKER_100X50)]
	plan = qrsticker_engine.layout.plan_groups(stickers, PAGE_A4, DEFAULT_MARGINS)
	assert plan.page_count == 2
	pages = {placement.device_ref: placement.page for placement in plan.placements}
	assert pages == {1: 0, 3: 0, 2: 1}
	assert plan.grid is None
	assert_on_page(plan)

	single = qrsticker_engine.layout.plan_groups([(1, small), (2, small)], PAGE_A4, DEFAULT_MARGINS)
	assert single.grid is not None


#============================================
def test_plan_groups_checks_every_sticker_first() -> None:
	"""
	A single oversized sticker stops the whole batch and is named.
	"""
	huge = qrsticker_engine.config.StickerSize(500.0, 500.0)
	stickers = [(1, STICKER_100X50), (2, huge)]
	with pytest.raises(qrsticker_engine.errors.StickerFitError) as excinfo:
		qrsticker_engine.layout.plan_groups(stickers, PAGE_A4, DEFAULT_MARGINS, layout="one-per-page")
	assert excinfo.value.device_ref == 2
