"""
Rendering and imposition logic.

Resolved template documents are drawn into one PDF tile per sticker, then
the tiles are placed onto printer pages following a LayoutPlan.
"""

# Standard Library
import base64
import binascii
import dataclasses
import io
import json
import pathlib
import re
from typing import Hashable

# PIP3 modules
import PIL.Image
import pypdf
import reportlab.lib.utils
import reportlab.pdfgen.canvas

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.document
import qrsticker_engine.layout
import qrsticker_engine.models
import qrsticker_engine.qr


TemplateDocument = qse.document.TemplateDocument
TemplateElement = qse.document.TemplateElement
StickerSize = qse.config.StickerSize
UploadedImage = qse.models.UploadedImage
ExportConfig = qse.config.ExportConfig
LayoutPlan = qse.layout.LayoutPlan

KIND_QRCODE = qse.document.KIND_QRCODE
KIND_TEXT = qse.document.KIND_TEXT
KIND_IMAGE = qse.document.KIND_IMAGE
KIND_RECT = qse.document.KIND_RECT
KIND_LINE = qse.document.KIND_LINE
DEFAULT_FONT_REGULAR = qse.config.DEFAULT_FONT_REGULAR
DEFAULT_FONT_BOLD = qse.config.DEFAULT_FONT_BOLD
DEFAULT_FONT_ITALIC = qse.config.DEFAULT_FONT_ITALIC
DEFAULT_FONT_BOLD_ITALIC = qse.config.DEFAULT_FONT_BOLD_ITALIC
PLACEHOLDER_STROKE = qse.config.PLACEHOLDER_STROKE
PROGRESS_BAR_WIDTH = qse.config.PROGRESS_BAR_WIDTH
PROGRESS_UPDATE_EVERY = qse.config.PROGRESS_UPDATE_EVERY

mm_to_points = qse.config.mm_to_points


@dataclasses.dataclass
class StickerTile:
	device_ref: Hashable
	label: str
	document: TemplateDocument
	sticker: StickerSize


@dataclasses.dataclass
class ImpositionResult:
	pages: int
	stickers: int
	rotated_stickers: int
	page_name: str


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Redraw a one-line progress bar in place.
	"""
	if total <= 0:
		return
	fraction = min(1.0, current / total)
	filled = int(round(PROGRESS_BAR_WIDTH * fraction))
	bar = "=" * filled + " " * (PROGRESS_BAR_WIDTH - filled)
	print(f"\r{prefix}: |{bar}| {current} of {total}", end="", flush=True)


#============================================
def parse_hex_color(value: str) -> tuple[float, float, float] | None:
	"""
	Parse a hex color string into RGB floats.

	Args:
		value: Color string like "#AABBCC" or "#ABC".

	Returns:
		Tuple of (r, g, b) in 0.0-1.0 range, or None when empty,
		"transparent" or not a hex color.
	"""
	if not value or not value.startswith("#"):
		return None
	digits = value[1:]
	if len(digits) == 3:
		digits = "".join(char * 2 for char in digits)
	if len(digits) != 6:
		return None
	try:
		red = int(digits[0:2], 16) / 255.0
		green = int(digits[2:4], 16) / 255.0
		blue = int(digits[4:6], 16) / 255.0
	except ValueError:
		return None
	return (red, green, blue)


#============================================
def sanitize_token(value: str) -> str:
	"""
	Turn a device label into a filename-safe token.

	Runs of anything other than ASCII letters and digits collapse to a
	single underscore; an empty result becomes "sticker".
	"""
	token = re.sub(r"[^0-9A-Za-z]+", "_", value).strip("_")
	return token or "sticker"


#============================================
def map_font_name(font_weight: str, italic: bool = False) -> str:
	"""
	Map designer font weight to a built-in PDF font name.

	Args:
		font_weight: Weight such as "normal", "bold" or "700".
		italic: Italic flag.

	Returns:
		ReportLab font name.
	"""
	weight = font_weight.strip().lower()
	is_bold = weight in ("bold", "bolder") or (weight.isdigit() and int(weight) >= 700)
	if italic and is_bold:
		return DEFAULT_FONT_BOLD_ITALIC
	if italic:
		return DEFAULT_FONT_ITALIC
	if is_bold:
		return DEFAULT_FONT_BOLD
	return DEFAULT_FONT_REGULAR


#============================================
def is_placeholder(value: str) -> bool:
	"""
	True for bracketed stand-ins left by unresolved references.
	"""
	return len(value) >= 2 and value.startswith("[") and value.endswith("]")


#============================================
def decode_data_uri(value: str) -> PIL.Image.Image:
	"""
	Decode a base64 image data-URI.

	Args:
		value: String like "data:image/png;base64,...".

	Returns:
		Loaded PIL image.
	"""
	header, separator, payload = value.partition(",")
	if not separator or not header.startswith("data:") or not header.endswith(";base64"):
		raise ValueError("Not a base64 data-URI")
	try:
		data = base64.b64decode(payload, validate=True)
	except binascii.Error as error:
		raise ValueError(f"Bad base64 payload in data-URI: {error}") from error
	image = PIL.Image.open(io.BytesIO(data))
	image.load()
	if image.mode not in ("RGB", "RGBA"):
		image = image.convert("RGBA")
	return image


#============================================
def element_image(element: TemplateElement) -> PIL.Image.Image | None:
	"""
	Image to draw for a QR or image element, or None for a placeholder.

	Args:
		element: Resolved QR or image element.

	Returns:
		PIL image or None.
	"""
	value = (element.data or element.src).strip()
	if not value or is_placeholder(value):
		return None
	if value.startswith("data:"):
		return decode_data_uri(value)
	if element.kind == KIND_QRCODE:
		return qse.qr.generate_qr_image(value).convert("RGB")
	return None


#============================================
def draw_placeholder(
	pdf: reportlab.pdfgen.canvas.Canvas,
	width: float,
	height: float,
	label: str,
) -> None:
	"""
	Draw a dashed box with a small caption where content is missing.

	Args:
		pdf: ReportLab canvas, origin at the element's top-left corner.
		width: Box width in points.
		height: Box height in points.
		label: Caption text.
	"""
	color = parse_hex_color(PLACEHOLDER_STROKE)
	pdf.setStrokeColorRGB(color[0], color[1], color[2])
	pdf.setFillColorRGB(color[0], color[1], color[2])
	pdf.setLineWidth(0.5)
	pdf.setDash(2, 2)
	pdf.rect(0.0, -height, width, height, stroke=1, fill=0)
	pdf.setDash()
	font_size = max(3.0, min(6.0, height / 3.0))
	pdf.setFont(DEFAULT_FONT_REGULAR, font_size)
	pdf.drawCentredString(width / 2.0, -height / 2.0 - font_size / 3.0, label)


#============================================
def draw_text_element(
	pdf: reportlab.pdfgen.canvas.Canvas,
	element: TemplateElement,
	width: float,
) -> None:
	"""
	Draw a text element, shrinking it to the box width when needed.

	Args:
		pdf: ReportLab canvas, origin at the element's top-left corner.
		element: Resolved text element.
		width: Box width in points.
	"""
	lines = element.text.splitlines()
	if not lines:
		return
	font_name = map_font_name(element.font_weight)
	font_size = element.font_size
	max_width = max(pdf.stringWidth(line, font_name, font_size) for line in lines)
	if width > 0.0 and max_width > width:
		font_size = font_size * width / max_width
	color = parse_hex_color(element.fill) or (0.0, 0.0, 0.0)
	pdf.setFillColorRGB(color[0], color[1], color[2])
	pdf.setFont(font_name, font_size)
	leading = font_size * 1.2
	for index, line in enumerate(lines):
		pdf.drawString(0.0, -font_size - index * leading, line)


#============================================
def draw_shape_element(
	pdf: reportlab.pdfgen.canvas.Canvas,
	element: TemplateElement,
	width: float,
	height: float,
) -> None:
	"""
	Draw a rect or line element.

	Args:
		pdf: ReportLab canvas, origin at the element's top-left corner.
		element: Shape element.
		width: Box width in points.
		height: Box height in points.
	"""
	fill = parse_hex_color(element.fill)
	stroke = parse_hex_color(element.stroke)
	if stroke is not None:
		pdf.setStrokeColorRGB(stroke[0], stroke[1], stroke[2])
		pdf.setLineWidth(element.stroke_width)
	if element.kind == KIND_LINE:
		if stroke is None:
			pdf.setStrokeColorRGB(0.0, 0.0, 0.0)
			pdf.setLineWidth(element.stroke_width)
		pdf.line(0.0, 0.0, width, -height)
		return
	if fill is not None:
		pdf.setFillColorRGB(fill[0], fill[1], fill[2])
	if fill is None and stroke is None:
		return
	pdf.rect(0.0, -height, width, height, stroke=int(stroke is not None), fill=int(fill is not None))


#============================================
def draw_element(
	pdf: reportlab.pdfgen.canvas.Canvas,
	element: TemplateElement,
	tile_height: float,
) -> int:
	"""
	Draw one element at its position on the tile.

	Args:
		pdf: ReportLab canvas for the tile.
		element: Resolved element, geometry in millimeters from top-left.
		tile_height: Tile height in points.

	Returns:
		1 when a placeholder was drawn instead of content, else 0.
	"""
	width = mm_to_points(element.width)
	height = mm_to_points(element.height)
	pdf.saveState()
	pdf.translate(mm_to_points(element.x), tile_height - mm_to_points(element.y))
	if element.angle:
		# designer angles turn clockwise
		pdf.rotate(-element.angle)
	placeholders = 0
	if element.kind == KIND_TEXT:
		draw_text_element(pdf, element, width)
	elif element.is_shape:
		draw_shape_element(pdf, element, width, height)
	elif element.kind in (KIND_QRCODE, KIND_IMAGE):
		image = element_image(element)
		if image is None:
			label = element.data if is_placeholder(element.data) else element.kind
			draw_placeholder(pdf, width, height, label)
			placeholders = 1
		else:
			pdf.drawImage(
				reportlab.lib.utils.ImageReader(image),
				0.0,
				-height,
				width=width,
				height=height,
				mask="auto",
				preserveAspectRatio=element.kind == KIND_IMAGE,
				anchor="c",
			)
	pdf.restoreState()
	return placeholders


#============================================
def render_sticker_pdf(
	document: TemplateDocument,
	sticker: StickerSize,
	output_path: pathlib.Path,
) -> int:
	"""
	Render a single sticker tile PDF.

	Args:
		document: Resolved template document.
		sticker: Sticker size in millimeters.
		output_path: Output file path.

	Returns:
		Number of placeholders drawn.
	"""
	tile_width = mm_to_points(sticker.width)
	tile_height = mm_to_points(sticker.height)
	pdf = reportlab.pdfgen.canvas.Canvas(str(output_path), pagesize=(tile_width, tile_height))
	placeholders = 0
	for element in document.elements:
		placeholders += draw_element(pdf, element, tile_height)
	pdf.showPage()
	pdf.save()
	return placeholders


#============================================
def render_tiles(
	tiles: list[StickerTile],
	output_dir: pathlib.Path,
	verbose: bool = True,
) -> list[dict]:
	"""
	Render stickers into tile PDFs.

	Args:
		tiles: Stickers to render.
		output_dir: Output directory.
		verbose: Print a progress bar and a placeholder summary.

	Returns:
		List of tile metadata dictionaries.
	"""
	output_dir.mkdir(parents=True, exist_ok=True)
	results: list[dict] = []
	placeholder_messages: list[str] = []
	total = len(tiles)
	if verbose and total > 0:
		print_progress("Tiles", 0, total)
	for index, tile in enumerate(tiles, start=1):
		tile_name = f"{index:04d}_{sanitize_token(tile.label)}.pdf"
		tile_path = output_dir / tile_name
		placeholders = render_sticker_pdf(tile.document, tile.sticker, tile_path)
		if placeholders > 0:
			placeholder_messages.append(f"Placeholders in {tile_name}: {placeholders}")
		results.append(
			{
				"id": tile_name.replace(".pdf", ""),
				"path": str(tile_path),
				"device_ref": tile.device_ref,
				"placeholders": placeholders,
			}
		)
		if verbose and total > 0 and (index % PROGRESS_UPDATE_EVERY == 0 or index == total):
			print_progress("Tiles", index, total)
	if verbose and total > 0:
		print()
	if verbose:
		for message in placeholder_messages:
			print(message)
	return results


#============================================
def impose_plan(
	tile_paths: dict[Hashable, pathlib.Path],
	plan: LayoutPlan,
	output_path: pathlib.Path,
) -> ImpositionResult:
	"""
	Place tile PDFs onto pages as a LayoutPlan describes.

	Args:
		tile_paths: Tile PDF path per device reference.
		plan: Layout plan; rotated placements are turned 90 degrees.
		output_path: Output PDF path.

	Returns:
		ImpositionResult.
	"""
	writer = pypdf.PdfWriter()
	page_width = mm_to_points(plan.page.width)
	page_height = mm_to_points(plan.page.height)
	for _ in range(plan.page_count):
		page = pypdf.PageObject.create_blank_page(width=page_width, height=page_height)
		writer.add_page(page)

	tile_cache: dict[str, pypdf.PageObject] = {}
	rotated_stickers = 0
	for placement in plan.placements:
		tile_path = str(tile_paths[placement.device_ref])
		if tile_path not in tile_cache:
			reader = pypdf.PdfReader(tile_path)
			tile_cache[tile_path] = reader.pages[0]
		tile_page = tile_cache[tile_path]

		cell_x = mm_to_points(placement.x)
		cell_y = page_height - mm_to_points(placement.y + placement.height)
		if placement.rotated:
			rotated_stickers += 1
			transform = pypdf.Transformation().rotate(90).translate(
				cell_x + mm_to_points(placement.width),
				cell_y,
			)
		else:
			transform = pypdf.Transformation().translate(cell_x, cell_y)
		writer.pages[placement.page].merge_transformed_page(tile_page, transform)

	writer.write(str(output_path))
	return ImpositionResult(
		pages=plan.page_count,
		stickers=len(plan.placements),
		rotated_stickers=rotated_stickers,
		page_name=plan.page.name,
	)


#============================================
def write_manifest(
	manifest_path: pathlib.Path,
	config: ExportConfig,
	plan: LayoutPlan,
	result: ImpositionResult,
	stickers: list[dict],
	images: list[UploadedImage] | None = None,
) -> None:
	"""
	Write a manifest JSON file.

	Args:
		manifest_path: Output path.
		config: Export configuration.
		plan: Layout plan used for imposition.
		result: Imposition result.
		stickers: Per-sticker records (device, template, match, missing references).
		images: Uploaded images the export used, with their last-used stamps.
	"""
	grid = None
	if plan.grid is not None:
		grid = {
			"columns": plan.grid.columns,
			"rows": plan.grid.rows,
			"stickers_per_page": plan.grid.stickers_per_page,
		}
	data = {
		"scope_id": config.scope_id,
		"output": str(config.output_path),
		"pages": result.pages,
		"stickers": stickers,
		"rotated_stickers": result.rotated_stickers,
		"layout": {
			"mode": plan.layout,
			"page_size": plan.page.name,
			"page_width": plan.page.width,
			"page_height": plan.page.height,
			"margin_horizontal": plan.margins.horizontal,
			"margin_vertical": plan.margins.vertical,
			"grid": grid,
		},
		"placements": [
			{
				"device_ref": placement.device_ref,
				"page": placement.page,
				"x": round(placement.x, 3),
				"y": round(placement.y, 3),
				"width": placement.width,
				"height": placement.height,
				"rotated": placement.rotated,
			}
			for placement in plan.placements
		],
		"fonts": {
			"regular": DEFAULT_FONT_REGULAR,
			"bold": DEFAULT_FONT_BOLD,
			"italic": DEFAULT_FONT_ITALIC,
			"bold_italic": DEFAULT_FONT_BOLD_ITALIC,
		},
		"images": [
			{
				"id": image.id,
				"name": image.name,
				"last_used_at": image.last_used_at.isoformat() if image.last_used_at else None,
			}
			for image in images or []
		],
	}
	with manifest_path.open("w", encoding="utf-8") as handle:
		json.dump(data, handle, indent=2, sort_keys=True)
