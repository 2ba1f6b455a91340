"""
Inventory, template and match records.
"""

# Standard Library
import dataclasses
import datetime
import json

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.document


TemplateDocument = qse.document.TemplateDocument
StickerSize = qse.config.StickerSize

DEFAULT_STICKER_WIDTH = qse.config.DEFAULT_STICKER_WIDTH
DEFAULT_STICKER_HEIGHT = qse.config.DEFAULT_STICKER_HEIGHT


@dataclasses.dataclass
class Scope:
	id: int
	owner_id: str
	display_name: str = ""
	kind: str = "meraki"
	company_logo_url: str = ""


@dataclasses.dataclass
class Organization:
	id: int
	scope_id: int
	organization_id: str
	name: str = ""
	url: str = ""
	qr_code_data_uri: str | None = None


@dataclasses.dataclass
class Network:
	id: int
	scope_id: int
	network_id: str
	organization_id: str = ""
	name: str = ""
	url: str = ""
	qr_code_data_uri: str | None = None


@dataclasses.dataclass
class Device:
	id: int
	scope_id: int
	serial: str
	name: str | None = None
	model: str | None = None
	classification: str | None = None
	network_id: str | None = None
	mac: str = ""
	firmware: str = ""
	status: str = ""
	tags: list[str] = dataclasses.field(default_factory=list)
	qr_code_data_uri: str | None = None
	is_deleted: bool = False


@dataclasses.dataclass
class UploadedImage:
	id: int
	scope_id: int
	name: str
	data_uri: str
	width_px: int = 0
	height_px: int = 0
	mime_type: str = "image/png"
	is_deleted: bool = False
	last_used_at: datetime.datetime | None = None


@dataclasses.dataclass
class Template:
	id: int
	name: str
	document: TemplateDocument
	scope_id: int | None = None
	is_system: bool = False
	page_width: float = DEFAULT_STICKER_WIDTH
	page_height: float = DEFAULT_STICKER_HEIGHT
	compatible_classifications: frozenset[str] | None = None
	description: str = ""
	last_used_at: datetime.datetime | None = None

	def __post_init__(self) -> None:
		if self.compatible_classifications is not None:
			self.compatible_classifications = normalize_classifications(
				self.compatible_classifications
			)

	@property
	def is_shared(self) -> bool:
		return self.scope_id is None

	@property
	def is_universal(self) -> bool:
		return not self.compatible_classifications

	@property
	def sticker_size(self) -> StickerSize:
		return StickerSize(width=self.page_width, height=self.page_height)

	def is_compatible_with(self, classification: str | None) -> bool:
		"""
		Check whether this template supports a device classification.

		Args:
			classification: Device classification, may be None or empty.

		Returns:
			True for universal templates or a case-insensitive member match.
			An empty classification is never compatible.
		"""
		if not classification or not classification.strip():
			return False
		if self.is_universal:
			return True
		return classification.strip().lower() in self.compatible_classifications


@dataclasses.dataclass
class DefaultMapping:
	scope_id: int
	classification: str
	template_id: int | None

	@property
	def is_active(self) -> bool:
		return self.template_id is not None


@dataclasses.dataclass
class MatchResult:
	template: Template
	match_reason: str
	confidence: float
	matched_by: str


#============================================
def normalize_classifications(values) -> frozenset[str] | None:
	"""
	Normalize a compatibility set to lowercase, dropping blanks.

	Args:
		values: Iterable of classification strings.

	Returns:
		Frozen set, or None when nothing remains (universal).
	"""
	normalized = frozenset(
		value.strip().lower() for value in values
		if isinstance(value, str) and value.strip()
	)
	if not normalized:
		return None
	return normalized


#============================================
def parse_compatibility_json(value: str | None) -> frozenset[str] | None:
	"""
	Parse the stored JSON list form of a compatibility set.

	Args:
		value: JSON text like '["switch", "wireless"]', or None.

	Returns:
		Normalized set, or None for universal templates.
	"""
	if value is None or not value.strip():
		return None
	parsed = json.loads(value)
	if parsed is None:
		return None
	if not isinstance(parsed, list):
		raise ValueError(f"Compatibility list must be a JSON array, got {value!r}")
	return normalize_classifications(parsed)


#============================================
def compatibility_to_json(values: frozenset[str] | None) -> str | None:
	"""
	Serialize a compatibility set to its stored JSON list form.
	"""
	if not values:
		return None
	return json.dumps(sorted(values))
