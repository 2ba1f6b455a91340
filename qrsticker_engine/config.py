"""
Shared configuration and constants.
"""

import dataclasses


POINTS_PER_INCH = 72.0
MM_PER_INCH = 25.4

# Tolerance for mm <-> render-unit rounding when sizing the grid.
BUFFER_MM = 2.0
DEFAULT_MARGIN_HORIZONTAL = 0.0
DEFAULT_MARGIN_VERTICAL = 2.0

DEFAULT_STICKER_WIDTH = 100.0
DEFAULT_STICKER_HEIGHT = 50.0
DEFAULT_PAGE_SIZE = "A4"
LAYOUT_AUTO_FIT = "auto-fit"
LAYOUT_ONE_PER_PAGE = "one-per-page"
LAYOUTS = (LAYOUT_AUTO_FIT, LAYOUT_ONE_PER_PAGE)

MATCH_CONNECTION_DEFAULT = "connection_default"
MATCH_COMPATIBLE = "compatible"
MATCH_FALLBACK = "fallback"
MATCH_FALLBACK_INCOMPATIBLE = "fallback_incompatible"
CONFIDENCE_CONNECTION_DEFAULT = 1.0
CONFIDENCE_COMPATIBLE = 0.6
CONFIDENCE_FALLBACK = 0.1
MATCH_CACHE_TTL_SECONDS = 30 * 60

QR_SIZE_PX = 400
QR_BORDER_MODULES = 4
QR_PREVIEW_CONTENT = {
	"device.qrcode": "MS-1234-ABCD-5678",
	"network.qrcode": "https://n123.meraki.com/Production-Network/n/manage/nodes/list",
	"organization.qrcode": "https://n123.meraki.com/o/example/manage/organization/overview",
}
PREVIEW_VALUES = {
	"device.serial": "MS-1234-ABCD-5678",
	"device.name": "Example Switch",
	"device.mac": "00:1A:2B:3C:4D:5E",
	"device.model": "MS225-48FP",
	"device.ipaddress": "192.168.1.10",
	"device.tags": "production, datacenter",
	"connection.name": "Main Office",
	"connection.displayname": "HQ Network",
	"connection.companylogourl": "https://example.com/logo.png",
	"network.name": "Production Network",
	"global.supporturl": "support.example.com",
	"global.supportphone": "+1-555-0100",
}
UNNAMED_DEVICE = "Unnamed Device"
CUSTOM_IMAGE_PREFIX = "customimage"
CUSTOM_IMAGE_FIELD_PREFIX = "image_"

DEFAULT_FONT_REGULAR = "Helvetica"
DEFAULT_FONT_BOLD = "Helvetica-Bold"
DEFAULT_FONT_ITALIC = "Helvetica-Oblique"
DEFAULT_FONT_BOLD_ITALIC = "Helvetica-BoldOblique"
DEFAULT_TEXT_SIZE = 16.0
DEFAULT_ELEMENT_SIZE = 50.0
PLACEHOLDER_STROKE = "#999999"
PROGRESS_BAR_WIDTH = 20
PROGRESS_UPDATE_EVERY = 10


@dataclasses.dataclass(frozen=True)
class PageSize:
	name: str
	width: float
	height: float
	label: str = ""


@dataclasses.dataclass(frozen=True)
class StickerSize:
	width: float
	height: float

	def rotated(self) -> "StickerSize":
		return StickerSize(width=self.height, height=self.width)


@dataclasses.dataclass(frozen=True)
class Margins:
	horizontal: float = DEFAULT_MARGIN_HORIZONTAL
	vertical: float = DEFAULT_MARGIN_VERTICAL


@dataclasses.dataclass
class ExportConfig:
	store_path: str
	scope_id: int
	user_id: str | None
	device_ids: list[int] | None
	page_size: PageSize
	layout: str
	margins: Margins
	output_path: str
	manifest_path: str | None
	stop_before_rendering: bool


PAGE_SIZES = {
	"a4": PageSize("A4", 210.0, 297.0, "A4"),
	"a5": PageSize("A5", 148.0, 210.0, "A5"),
	"a6": PageSize("A6", 105.0, 148.0, "A6"),
	"4x6": PageSize("4x6", 101.6, 152.4, '4"x6"'),
	"letter": PageSize("Letter", 215.9, 279.4, "US Letter"),
	"legal": PageSize("Legal", 215.9, 355.6, "US Legal"),
}


#============================================
def get_page_size(name: str) -> PageSize:
	"""
	Look up a named page size.

	Args:
		name: Page size name, case-insensitive (A4, A5, A6, 4x6, Letter, Legal).

	Returns:
		PageSize in millimeters.
	"""
	key = name.strip().lower()
	if key not in PAGE_SIZES:
		known = ", ".join(size.name for size in PAGE_SIZES.values())
		raise ValueError(f"Unknown page size {name!r} (expected one of {known})")
	return PAGE_SIZES[key]


#============================================
def mm_to_points(value: float) -> float:
	"""
	Convert millimeters to PDF points.

	Args:
		value: Millimeters value.

	Returns:
		Points value.
	"""
	return value / MM_PER_INCH * POINTS_PER_INCH
