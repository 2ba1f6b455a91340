"""
Template document parsing and serialization.

A template document is the designer's JSON: an ordered list of positioned
elements plus optional page size metadata. Elements are loaded into typed
TemplateElement records and rejected early when their shape is wrong.
"""

# Standard Library
import copy
import dataclasses
import json

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.errors


DocumentError = qse.errors.DocumentError

DEFAULT_TEXT_SIZE = qse.config.DEFAULT_TEXT_SIZE
DEFAULT_ELEMENT_SIZE = qse.config.DEFAULT_ELEMENT_SIZE

KIND_QRCODE = "qrcode"
KIND_TEXT = "text"
KIND_IMAGE = "image"
KIND_RECT = "rect"
KIND_LINE = "line"
KIND_ALIASES = {
	"qrcode": KIND_QRCODE,
	"text": KIND_TEXT,
	"i-text": KIND_TEXT,
	"textbox": KIND_TEXT,
	"image": KIND_IMAGE,
	"rect": KIND_RECT,
	"line": KIND_LINE,
}
SHAPE_KINDS = (KIND_RECT, KIND_LINE)

# keys consumed by parse_element; everything else is kept in extra
_KNOWN_KEYS = {
	"type", "id", "x", "y", "left", "top", "width", "height", "angle",
	"text", "dataBinding", "properties", "fontFamily", "fontSize",
	"fontWeight", "fill", "stroke", "strokeWidth", "src",
}
_KNOWN_PROPERTY_KEYS = {"dataSource", "data", "eccLevel", "customImageId"}


@dataclasses.dataclass
class TemplateElement:
	kind: str
	x: float
	y: float
	width: float = DEFAULT_ELEMENT_SIZE
	height: float = DEFAULT_ELEMENT_SIZE
	angle: float = 0.0
	element_id: str = ""
	text: str = ""
	data_binding: str = ""
	data_source: str = ""
	data: str = ""
	font_family: str = "Arial"
	font_size: float = DEFAULT_TEXT_SIZE
	font_weight: str = "normal"
	fill: str = ""
	stroke: str = ""
	stroke_width: float = 1.0
	src: str = ""
	ecc_level: str = "Q"
	custom_image_id: int | None = None
	source_type: str = ""
	extra: dict = dataclasses.field(default_factory=dict)
	extra_properties: dict = dataclasses.field(default_factory=dict)

	@property
	def is_shape(self) -> bool:
		return self.kind in SHAPE_KINDS


@dataclasses.dataclass
class TemplateDocument:
	elements: list[TemplateElement]
	version: str = ""
	page_width: float | None = None
	page_height: float | None = None
	page_unit: str = "mm"
	extra: dict = dataclasses.field(default_factory=dict)


#============================================
def _read_float(
	data: dict,
	keys: tuple[str, ...],
	default_value: float,
	where: str,
) -> float:
	"""
	Read the first present numeric key from a dict.

	Args:
		data: Source dict.
		keys: Candidate keys, in priority order.
		default_value: Value when no key is present.
		where: Location text for error messages.

	Returns:
		Float value.
	"""
	for key in keys:
		if key not in data or data[key] is None:
			continue
		value = data[key]
		if isinstance(value, bool) or not isinstance(value, (int, float)):
			raise DocumentError(f"{where}: '{key}' must be a number, got {value!r}")
		return float(value)
	return default_value


#============================================
def _read_str(data: dict, key: str, default_value: str, where: str) -> str:
	"""
	Read an optional string key from a dict.
	"""
	value = data.get(key)
	if value is None:
		return default_value
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return str(value)
	if not isinstance(value, str):
		raise DocumentError(f"{where}: '{key}' must be a string, got {value!r}")
	return value


#============================================
def parse_element(data: dict, index: int) -> TemplateElement:
	"""
	Parse one designer object into a TemplateElement.

	Args:
		data: Designer object dict.
		index: Position in the objects list, for error messages.

	Returns:
		TemplateElement.
	"""
	where = f"objects[{index}]"
	if not isinstance(data, dict):
		raise DocumentError(f"{where}: expected an object, got {type(data).__name__}")
	raw_type = data.get("type")
	if not isinstance(raw_type, str) or not raw_type.strip():
		raise DocumentError(f"{where}: missing element type")
	kind = KIND_ALIASES.get(raw_type.strip().lower())
	if kind is None:
		raise DocumentError(f"{where}: unsupported element type {raw_type!r}")

	properties = data.get("properties") or {}
	if not isinstance(properties, dict):
		raise DocumentError(f"{where}: 'properties' must be an object")

	custom_image_id = properties.get("customImageId")
	if custom_image_id is not None:
		if isinstance(custom_image_id, bool) or not isinstance(custom_image_id, int):
			raise DocumentError(f"{where}: 'customImageId' must be an integer")

	element = TemplateElement(
		kind=kind,
		x=_read_float(data, ("x", "left"), 0.0, where),
		y=_read_float(data, ("y", "top"), 0.0, where),
		width=_read_float(data, ("width",), DEFAULT_ELEMENT_SIZE, where),
		height=_read_float(data, ("height",), DEFAULT_ELEMENT_SIZE, where),
		angle=_read_float(data, ("angle",), 0.0, where),
		element_id=_read_str(data, "id", "", where),
		text=_read_str(data, "text", "", where),
		data_binding=_read_str(data, "dataBinding", "", where).strip(),
		data_source=_read_str(properties, "dataSource", "", where).strip(),
		data=_read_str(properties, "data", "", where),
		font_family=_read_str(data, "fontFamily", "Arial", where),
		font_size=_read_float(data, ("fontSize",), DEFAULT_TEXT_SIZE, where),
		font_weight=_read_str(data, "fontWeight", "normal", where),
		fill=_read_str(data, "fill", "", where),
		stroke=_read_str(data, "stroke", "", where),
		stroke_width=_read_float(data, ("strokeWidth",), 1.0, where),
		src=_read_str(data, "src", "", where),
		ecc_level=_read_str(properties, "eccLevel", "Q", where),
		custom_image_id=custom_image_id,
		source_type=raw_type,
		extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
		extra_properties={
			key: value for key, value in properties.items()
			if key not in _KNOWN_PROPERTY_KEYS
		},
	)
	if element.width < 0.0 or element.height < 0.0:
		raise DocumentError(f"{where}: negative element size")
	return element


#============================================
def parse_template_document(source: dict | str) -> TemplateDocument:
	"""
	Parse and validate a template document.

	Args:
		source: Document dict or its JSON text.

	Returns:
		TemplateDocument.
	"""
	data = source
	if isinstance(source, str):
		text = source.strip()
		if not text:
			return TemplateDocument(elements=[])
		try:
			data = json.loads(text)
		except json.JSONDecodeError as error:
			raise DocumentError(f"Template JSON is not valid: {error}") from error
	if not isinstance(data, dict):
		raise DocumentError("Template document must be a JSON object")

	objects = data.get("objects", [])
	if objects is None:
		objects = []
	if not isinstance(objects, list):
		raise DocumentError("Template 'objects' must be a list")
	elements = [parse_element(obj, index) for index, obj in enumerate(objects)]

	page_width = None
	page_height = None
	page_unit = "mm"
	page_size = data.get("pageSize")
	if page_size is not None:
		if not isinstance(page_size, dict):
			raise DocumentError("Template 'pageSize' must be an object")
		page_width = _read_float(page_size, ("width",), 0.0, "pageSize") or None
		page_height = _read_float(page_size, ("height",), 0.0, "pageSize") or None
		page_unit = _read_str(page_size, "unit", "mm", "pageSize")

	extra = {
		key: value for key, value in data.items()
		if key not in ("objects", "pageSize", "version")
	}
	return TemplateDocument(
		elements=elements,
		version=_read_str(data, "version", "", "document"),
		page_width=page_width,
		page_height=page_height,
		page_unit=page_unit,
		extra=extra,
	)


#============================================
def element_to_dict(element: TemplateElement) -> dict:
	"""
	Serialize a TemplateElement back to designer JSON form.

	Args:
		element: Element to serialize.

	Returns:
		Designer object dict.
	"""
	data = dict(element.extra)
	data["type"] = element.source_type or element.kind
	if element.element_id:
		data["id"] = element.element_id
	data["x"] = element.x
	data["y"] = element.y
	data["width"] = element.width
	data["height"] = element.height
	if element.angle:
		data["angle"] = element.angle
	if element.kind == KIND_TEXT:
		data["text"] = element.text
		data["fontFamily"] = element.font_family
		data["fontSize"] = element.font_size
		data["fontWeight"] = element.font_weight
		if element.data_binding:
			data["dataBinding"] = element.data_binding
	if element.fill:
		data["fill"] = element.fill
	if element.stroke:
		data["stroke"] = element.stroke
	if element.is_shape:
		data["strokeWidth"] = element.stroke_width
	if element.src:
		data["src"] = element.src

	properties = dict(element.extra_properties)
	if element.data_source:
		properties["dataSource"] = element.data_source
	if element.data:
		properties["data"] = element.data
	if element.kind == KIND_QRCODE:
		properties["eccLevel"] = element.ecc_level
	if element.custom_image_id is not None:
		properties["customImageId"] = element.custom_image_id
	if properties:
		data["properties"] = properties
	return data


#============================================
def document_to_dict(document: TemplateDocument) -> dict:
	"""
	Serialize a TemplateDocument to designer JSON form.
	"""
	data = dict(document.extra)
	if document.version:
		data["version"] = document.version
	if document.page_width is not None and document.page_height is not None:
		data["pageSize"] = {
			"width": document.page_width,
			"height": document.page_height,
			"unit": document.page_unit,
		}
	data["objects"] = [element_to_dict(element) for element in document.elements]
	return data


#============================================
def clone_document(document: TemplateDocument) -> TemplateDocument:
	"""
	Deep copy a document so callers can modify it freely.
	"""
	return copy.deepcopy(document)
