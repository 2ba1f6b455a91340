"""
CLI entry points for sticker export.
"""

# Standard Library
import argparse
import pathlib
import time

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.bindings
import qrsticker_engine.config
import qrsticker_engine.export_data
import qrsticker_engine.layout
import qrsticker_engine.matching
import qrsticker_engine.render
import qrsticker_engine.store


ExportConfig = qse.config.ExportConfig
Margins = qse.config.Margins
StickerTile = qse.render.StickerTile

DEFAULT_PAGE_SIZE = qse.config.DEFAULT_PAGE_SIZE
DEFAULT_MARGIN_HORIZONTAL = qse.config.DEFAULT_MARGIN_HORIZONTAL
DEFAULT_MARGIN_VERTICAL = qse.config.DEFAULT_MARGIN_VERTICAL
LAYOUT_AUTO_FIT = qse.config.LAYOUT_AUTO_FIT
LAYOUTS = qse.config.LAYOUTS
PAGE_SIZES = qse.config.PAGE_SIZES


#============================================
def build_config(args: argparse.Namespace) -> ExportConfig:
	"""
	Build export config from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		ExportConfig.
	"""
	config = ExportConfig(
		store_path=args.store_path,
		scope_id=args.scope_id,
		user_id=args.user_id,
		device_ids=args.device_ids,
		page_size=qse.config.get_page_size(args.page_size),
		layout=args.layout,
		margins=Margins(
			horizontal=args.margin_horizontal,
			vertical=args.margin_vertical,
		),
		output_path=args.output_path,
		manifest_path=args.manifest_path,
		stop_before_rendering=args.stop_before_rendering,
	)
	return config


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command line arguments.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Export device QR stickers to a print-ready PDF.")
	parser.add_argument("store_path", help="Store JSON file with templates and inventory.")

	select_group = parser.add_argument_group("Selection")
	select_group.add_argument("-s", "--scope", dest="scope_id", type=int, required=True, help="Scope (connection) id.")
	select_group.add_argument("-u", "--user", dest="user_id", default=None, help="Caller id; must own the scope.")
	select_group.add_argument(
		"-d",
		"--device",
		dest="device_ids",
		type=int,
		action="append",
		default=None,
		help="Device id to export (repeatable, default: every device in the scope).",
	)

	output_group = parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output", dest="output_path", required=True, help="Output PDF path.")
	output_group.add_argument("-m", "--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")

	page_group = parser.add_argument_group("Page")
	page_group.add_argument(
		"-p",
		"--page-size",
		dest="page_size",
		default=DEFAULT_PAGE_SIZE,
		choices=sorted(size.name for size in PAGE_SIZES.values()),
		help="Target page size.",
	)
	page_group.add_argument("-l", "--layout", dest="layout", default=LAYOUT_AUTO_FIT, choices=LAYOUTS, help="Page layout mode.")
	page_group.add_argument(
		"--margin-horizontal",
		dest="margin_horizontal",
		type=float,
		default=DEFAULT_MARGIN_HORIZONTAL,
		help="Left and right page margin in mm.",
	)
	page_group.add_argument(
		"--margin-vertical",
		dest="margin_vertical",
		type=float,
		default=DEFAULT_MARGIN_VERTICAL,
		help="Top and bottom page margin in mm.",
	)

	behavior_group = parser.add_argument_group("Behavior")
	behavior_group.add_argument(
		"--stop-before-rendering",
		dest="stop_before_rendering",
		action="store_true",
		help="Stop after planning the layout (skip rendering and imposition).",
	)
	parser.set_defaults(stop_before_rendering=False)

	args = parser.parse_args()
	return args


#============================================
def run_pipeline(config: ExportConfig) -> qse.render.ImpositionResult | None:
	"""
	Run the full pipeline from store file to imposed PDF.

	Args:
		config: Export configuration.

	Returns:
		ImpositionResult, or None when stopping before rendering.
	"""
	print("QR sticker export pipeline")
	print(f"Store: {config.store_path}")
	print(f"Scope: {config.scope_id}")
	print(f"Output PDF: {config.output_path}")
	if config.manifest_path:
		print(f"Manifest: {config.manifest_path}")
	print(f"Page size: {config.page_size.label or config.page_size.name}")
	print(f"Layout: {config.layout}")
	if config.stop_before_rendering:
		print("Stop before rendering: True")

	start_time = time.perf_counter()
	template_store, inventory = qse.store.load_store_file(config.store_path)
	device_ids = config.device_ids
	if not device_ids:
		device_ids = [device.id for device in inventory.devices_for_scope(config.scope_id)]
	print(f"Devices selected: {len(device_ids)}")

	match_start = time.perf_counter()
	contexts = qse.export_data.get_bulk_export_contexts(
		inventory,
		device_ids,
		config.scope_id,
		config.user_id,
		verbose=True,
	)
	matcher = qse.matching.TemplateMatcher(template_store)
	matches = matcher.match_batch(
		[context.device for context in contexts],
		config.scope_id,
		verbose=True,
	)
	match_end = time.perf_counter()

	resolve_start = time.perf_counter()
	tiles = []
	sticker_records = []
	image_ids = set()
	for context in contexts:
		device = context.device
		match = matches[device.id]
		binding_context = qse.export_data.build_context_for_export(context)
		resolved = qse.bindings.merge_document(match.template.document, binding_context)
		references = qse.bindings.extract_references(match.template.document)
		image_ids.update(qse.bindings.referenced_image_ids(references))
		tiles.append(
			StickerTile(
				device_ref=device.id,
				label=device.serial or device.name or str(device.id),
				document=resolved.document,
				sticker=match.template.sticker_size,
			)
		)
		sticker_records.append(
			{
				"device_id": device.id,
				"serial": device.serial,
				"template_id": match.template.id,
				"template_name": match.template.name,
				"match_reason": match.match_reason,
				"confidence": match.confidence,
				"missing_references": sorted(resolved.missing),
			}
		)
	incomplete = sum(1 for record in sticker_records if record["missing_references"])
	resolve_end = time.perf_counter()
	print(f"Stickers resolved: {len(tiles)}")
	if incomplete:
		print(f"Stickers with unresolved references: {incomplete}")

	plan = qse.layout.plan_groups(
		[(tile.device_ref, tile.sticker) for tile in tiles],
		config.page_size,
		config.margins,
		config.layout,
	)
	print(f"Pages planned: {plan.page_count}")
	if plan.grid is not None:
		print(f"Grid: {plan.grid.columns} x {plan.grid.rows}")

	if config.stop_before_rendering:
		print("Stopping before rendering tiles.")
		total_time = time.perf_counter() - start_time
		print(
			"Timing: match={:.2f}s resolve={:.2f}s total={:.2f}s".format(
				match_end - match_start,
				resolve_end - resolve_start,
				total_time,
			)
		)
		return None

	output_path = pathlib.Path(config.output_path)
	render_start = time.perf_counter()
	tiles_dir = output_path.parent / "tiles"
	print(f"Tiles directory: {tiles_dir}")
	print("Rendering tiles")
	rendered = qse.render.render_tiles(tiles, tiles_dir)
	render_end = time.perf_counter()
	print(f"Tiles rendered: {len(rendered)}")

	tile_paths = {tile["device_ref"]: pathlib.Path(tile["path"]) for tile in rendered}
	print("Imposing tiles")
	impose_start = time.perf_counter()
	result = qse.render.impose_plan(tile_paths, plan, output_path)
	impose_end = time.perf_counter()
	print(f"Pages written: {result.pages}")
	print(f"Stickers printed: {result.stickers}")
	print(f"Stickers rotated: {result.rotated_stickers}")

	used_images = inventory.track_image_usage(sorted(image_ids))
	if used_images:
		print(f"Images used: {len(used_images)}")

	manifest_path = config.manifest_path
	if manifest_path is None:
		manifest_path = f"{output_path}.json"
	qse.render.write_manifest(
		pathlib.Path(manifest_path),
		config,
		plan,
		result,
		sticker_records,
		used_images,
	)

	total_time = time.perf_counter() - start_time
	print(
		"Timing: match={:.2f}s resolve={:.2f}s render={:.2f}s impose={:.2f}s total={:.2f}s".format(
			match_end - match_start,
			resolve_end - resolve_start,
			render_end - render_start,
			impose_end - impose_start,
			total_time,
		)
	)
	print(f"Manifest written: {manifest_path}")
	return result


#============================================
def main() -> None:
	"""
	Main entry point.
	"""
	args = parse_args()
	config = build_config(args)
	run_pipeline(config)
