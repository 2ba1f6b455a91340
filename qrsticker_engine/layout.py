"""
Print layout: fit checks, rotation decisions and page placement plans.

All values are millimeters. Placement coordinates are measured from the
top-left corner of the page; width and height are the footprint on the
page, after any rotation.
"""

# Standard Library
import dataclasses
import math
from typing import Hashable

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.errors


PageSize = qse.config.PageSize
StickerSize = qse.config.StickerSize
Margins = qse.config.Margins
StickerFitError = qse.errors.StickerFitError

BUFFER_MM = qse.config.BUFFER_MM
LAYOUT_AUTO_FIT = qse.config.LAYOUT_AUTO_FIT
LAYOUT_ONE_PER_PAGE = qse.config.LAYOUT_ONE_PER_PAGE

# guards floor() against float noise such as 2.9999999
GRID_EPSILON = 1e-9


@dataclasses.dataclass(frozen=True)
class FitResult:
	fits: bool
	rotated: bool
	footprint: StickerSize
	usable_width: float
	usable_height: float


@dataclasses.dataclass(frozen=True)
class GridSpec:
	columns: int
	rows: int
	spacing_x: float
	spacing_y: float

	@property
	def stickers_per_page(self) -> int:
		return self.columns * self.rows


@dataclasses.dataclass(frozen=True)
class Placement:
	device_ref: Hashable
	page: int
	x: float
	y: float
	width: float
	height: float
	rotated: bool
	row: int = 0
	column: int = 0


@dataclasses.dataclass
class LayoutPlan:
	placements: list[Placement]
	page_count: int
	page: PageSize
	layout: str
	margins: Margins
	grid: GridSpec | None = None

	def placements_for_page(self, page: int) -> list[Placement]:
		return [placement for placement in self.placements if placement.page == page]


#============================================
def usable_area(page: PageSize, margins: Margins) -> tuple[float, float]:
	"""
	Page size minus margins on both sides.

	Args:
		page: Page size.
		margins: Horizontal and vertical margins.

	Returns:
		Tuple of (usable_width, usable_height).
	"""
	return (
		page.width - 2.0 * margins.horizontal,
		page.height - 2.0 * margins.vertical,
	)


#============================================
def _fits(sticker: StickerSize, usable_width: float, usable_height: float) -> bool:
	return (
		sticker.width + BUFFER_MM <= usable_width + GRID_EPSILON
		and sticker.height + BUFFER_MM <= usable_height + GRID_EPSILON
	)


#============================================
def _check_sticker(sticker: StickerSize) -> None:
	if sticker.width <= 0.0 or sticker.height <= 0.0:
		raise ValueError(f"Sticker size must be positive, got {sticker.width}x{sticker.height}mm")


#============================================
def validate_fit(sticker: StickerSize, page: PageSize, margins: Margins) -> FitResult:
	"""
	Check whether a sticker fits a page, unrotated or rotated 90 degrees.

	A sticker is rotated only when it does not fit as designed but fits
	with width and height swapped.

	Args:
		sticker: Sticker size as designed.
		page: Target page size.
		margins: Page margins.

	Returns:
		FitResult; footprint is the size placed on the page.
	"""
	_check_sticker(sticker)
	usable_width, usable_height = usable_area(page, margins)
	if _fits(sticker, usable_width, usable_height):
		return FitResult(True, False, sticker, usable_width, usable_height)
	rotated = sticker.rotated()
	if _fits(rotated, usable_width, usable_height):
		return FitResult(True, True, rotated, usable_width, usable_height)
	return FitResult(False, False, sticker, usable_width, usable_height)


#============================================
def require_fit(
	sticker: StickerSize,
	page: PageSize,
	margins: Margins,
	device_ref: Hashable | None = None,
) -> FitResult:
	"""
	Like validate_fit, but raise StickerFitError when nothing fits.
	"""
	result = validate_fit(sticker, page, margins)
	if not result.fits:
		raise StickerFitError(
			sticker.width,
			sticker.height,
			result.usable_width,
			result.usable_height,
			page_name=page.name,
			device_ref=device_ref,
		)
	return result


#============================================
def compute_grid(sticker: StickerSize, page: PageSize, margins: Margins) -> GridSpec:
	"""
	Columns, rows and centering gaps for one sticker footprint.

	Args:
		sticker: Footprint on the page (rotation already applied).
		page: Target page size.
		margins: Page margins.

	Returns:
		GridSpec with at least one column and one row.
	"""
	usable_width, usable_height = usable_area(page, margins)
	columns = max(1, math.floor(usable_width / (sticker.width + BUFFER_MM) + GRID_EPSILON))
	rows = max(1, math.floor(usable_height / (sticker.height + BUFFER_MM) + GRID_EPSILON))
	spacing_x = max(0.0, (usable_width - columns * sticker.width) / (columns + 1))
	spacing_y = max(0.0, (usable_height - rows * sticker.height) / (rows + 1))
	return GridSpec(columns=columns, rows=rows, spacing_x=spacing_x, spacing_y=spacing_y)


#============================================
def plan_auto_fit(
	device_refs: list[Hashable],
	sticker: StickerSize,
	page: PageSize,
	margins: Margins,
) -> LayoutPlan:
	"""
	Tile stickers onto as few pages as possible.

	Cells fill row by row; the grid is centered in the usable area with
	equal gaps between and around stickers.

	Args:
		device_refs: Device references in print order.
		sticker: Sticker size as designed, shared by every device.
		page: Target page size.
		margins: Page margins.

	Returns:
		LayoutPlan.
	"""
	fit = require_fit(sticker, page, margins)
	footprint = fit.footprint
	grid = compute_grid(footprint, page, margins)
	per_page = grid.stickers_per_page

	placements = []
	for index, device_ref in enumerate(device_refs):
		page_index = index // per_page
		slot = index % per_page
		row = slot // grid.columns
		column = slot % grid.columns
		x = margins.horizontal + grid.spacing_x + column * (footprint.width + grid.spacing_x)
		y = margins.vertical + grid.spacing_y + row * (footprint.height + grid.spacing_y)
		placements.append(
			Placement(
				device_ref=device_ref,
				page=page_index,
				x=x,
				y=y,
				width=footprint.width,
				height=footprint.height,
				rotated=fit.rotated,
				row=row,
				column=column,
			)
		)
	page_count = math.ceil(len(device_refs) / per_page)
	return LayoutPlan(
		placements=placements,
		page_count=page_count,
		page=page,
		layout=LAYOUT_AUTO_FIT,
		margins=margins,
		grid=grid,
	)


#============================================
def plan_one_per_page(
	device_refs: list[Hashable],
	sticker: StickerSize,
	page: PageSize,
	margins: Margins,
) -> LayoutPlan:
	"""
	Place each sticker centered on its own page.

	Args:
		device_refs: Device references in print order.
		sticker: Sticker size as designed.
		page: Target page size.
		margins: Page margins, used for the fit check.

	Returns:
		LayoutPlan with one page per device.
	"""
	fit = require_fit(sticker, page, margins)
	footprint = fit.footprint
	x = (page.width - footprint.width) / 2.0
	y = (page.height - footprint.height) / 2.0
	placements = [
		Placement(
			device_ref=device_ref,
			page=index,
			x=x,
			y=y,
			width=footprint.width,
			height=footprint.height,
			rotated=fit.rotated,
		)
		for index, device_ref in enumerate(device_refs)
	]
	return LayoutPlan(
		placements=placements,
		page_count=len(device_refs),
		page=page,
		layout=LAYOUT_ONE_PER_PAGE,
		margins=margins,
		grid=GridSpec(columns=1, rows=1, spacing_x=0.0, spacing_y=0.0),
	)


#============================================
def validate_stickers_for_page(
	stickers: list[tuple[Hashable, StickerSize]],
	page: PageSize,
	margins: Margins,
) -> dict[Hashable, FitResult]:
	"""
	Fit-check every sticker of a batch before any plan is built.

	Args:
		stickers: List of (device_ref, sticker size).
		page: Target page size.
		margins: Page margins.

	Returns:
		Dict of device_ref -> FitResult. Raises StickerFitError naming the
		first device whose sticker fits in neither orientation.
	"""
	results = {}
	for device_ref, sticker in stickers:
		results[device_ref] = require_fit(sticker, page, margins, device_ref=device_ref)
	return results


#============================================
def plan_layout(
	device_refs: list[Hashable],
	sticker: StickerSize,
	page: PageSize,
	margins: Margins,
	layout: str = LAYOUT_AUTO_FIT,
) -> LayoutPlan:
	"""
	Dispatch to the planner for a layout name.
	"""
	if layout == LAYOUT_AUTO_FIT:
		return plan_auto_fit(device_refs, sticker, page, margins)
	if layout == LAYOUT_ONE_PER_PAGE:
		return plan_one_per_page(device_refs, sticker, page, margins)
	raise ValueError(f"Unknown layout {layout!r}")


#============================================
def plan_groups(
	stickers: list[tuple[Hashable, StickerSize]],
	page: PageSize,
	margins: Margins,
	layout: str = LAYOUT_AUTO_FIT,
) -> LayoutPlan:
	"""
	Plan stickers of mixed sizes, one size group after another.

	Stickers sharing a size are planned together and each group starts on
	a new page. Every sticker is fit-checked before any group is planned.

	Args:
		stickers: List of (device_ref, sticker size) in print order.
		page: Target page size.
		margins: Page margins.
		layout: auto-fit or one-per-page.

	Returns:
		LayoutPlan with pages numbered across all groups.
	"""
	validate_stickers_for_page(stickers, page, margins)
	groups: dict[StickerSize, list[Hashable]] = {}
	for device_ref, sticker in stickers:
		groups.setdefault(sticker, []).append(device_ref)

	placements = []
	page_offset = 0
	grid = None
	for sticker, device_refs in groups.items():
		plan = plan_layout(device_refs, sticker, page, margins, layout)
		for placement in plan.placements:
			placements.append(dataclasses.replace(placement, page=placement.page + page_offset))
		page_offset += plan.page_count
		grid = plan.grid if len(groups) == 1 else None
	return LayoutPlan(
		placements=placements,
		page_count=page_offset,
		page=page,
		layout=layout,
		margins=margins,
		grid=grid,
	)
