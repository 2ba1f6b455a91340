"""
Binding resolution: symbolic references in template documents.

A reference has the form prefix.field (device.serial, global.supportUrl,
customImage.Image_42). References appear as an element's data source, a
text element's data binding, or {{...}} runs inside text. Lookup is
case-insensitive throughout.
"""

# Standard Library
import dataclasses
import re
from typing import Callable

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.document
import qrsticker_engine.models
import qrsticker_engine.qr


TemplateDocument = qse.document.TemplateDocument
TemplateElement = qse.document.TemplateElement
Device = qse.models.Device
Network = qse.models.Network
Organization = qse.models.Organization
Scope = qse.models.Scope
UploadedImage = qse.models.UploadedImage

KIND_TEXT = qse.document.KIND_TEXT
UNNAMED_DEVICE = qse.config.UNNAMED_DEVICE
CUSTOM_IMAGE_PREFIX = qse.config.CUSTOM_IMAGE_PREFIX
CUSTOM_IMAGE_FIELD_PREFIX = qse.config.CUSTOM_IMAGE_FIELD_PREFIX
PREVIEW_VALUES = qse.config.PREVIEW_VALUES
QR_PREVIEW_CONTENT = qse.config.QR_PREVIEW_CONTENT

REFERENCE_PATTERN = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")
_OPEN_BRACES_PATTERN = re.compile(r"\{\{+")
_CLOSE_BRACES_PATTERN = re.compile(r"\}\}+")
CUSTOM_IMAGE_PATTERN = re.compile(r"^customimage\.image_(\d+)$")

QrGenerator = Callable[[str | None], str | None]

# model prefix -> derived device type
_DEVICE_TYPE_PREFIXES = (
	("MS", "switch"),
	("C9", "switch"),
	("MR", "ap"),
	("MX", "gateway"),
	("MV", "camera"),
	("MT", "sensor"),
	("MC", "cellular"),
)


#============================================
def normalize_reference(reference: str) -> str:
	"""
	Canonical form of a reference or key: stripped and lowercased.
	"""
	return reference.strip().lower()


#============================================
def split_reference(reference: str) -> tuple[str, str]:
	"""
	Split a reference into (prefix, field) on the first dot.

	Args:
		reference: Reference text.

	Returns:
		Normalized (prefix, field); field is empty when there is no dot.
	"""
	prefix, _, field = normalize_reference(reference).partition(".")
	return (prefix.strip(), field.strip())


#============================================
def placeholder_for(reference: str) -> str:
	"""
	Bracketed stand-in for a reference with no bound value.
	"""
	return f"[{normalize_reference(reference)}]"


class BindingContext:
	"""
	Case-insensitive prefix -> field -> value mapping for one device.

	Keys are lowercased when stored, so a lookup is one dict access per level.
	"""

	def __init__(self, values: dict[str, dict[str, object]] | None = None) -> None:
		self._values: dict[str, dict[str, str]] = {}
		for prefix, fields in (values or {}).items():
			self.update(prefix, fields)

	def set(self, prefix: str, field: str, value: object) -> None:
		if value is None:
			return
		fields = self._values.setdefault(normalize_reference(prefix), {})
		fields[normalize_reference(field)] = str(value)

	def update(self, prefix: str, fields: dict[str, object]) -> None:
		self._values.setdefault(normalize_reference(prefix), {})
		for field, value in fields.items():
			self.set(prefix, field, value)

	def lookup(self, reference: str) -> str | None:
		prefix, field = split_reference(reference)
		fields = self._values.get(prefix)
		if fields is None:
			return None
		return fields.get(field)

	def fields(self, prefix: str) -> dict[str, str]:
		return dict(self._values.get(normalize_reference(prefix), {}))

	def prefixes(self) -> list[str]:
		return sorted(self._values)

	def __contains__(self, reference: object) -> bool:
		if not isinstance(reference, str):
			return False
		return self.lookup(reference) is not None

	def __repr__(self) -> str:
		return f"BindingContext(prefixes={self.prefixes()})"


@dataclasses.dataclass
class ResolvedDocument:
	document: TemplateDocument
	missing: set[str]

	@property
	def is_complete(self) -> bool:
		return not self.missing


#============================================
def derive_device_type(model: str | None) -> str:
	"""
	Guess a device type from its model string.

	Args:
		model: Model such as MS225-48FP or MR32.

	Returns:
		switch, ap, gateway, appliance, camera, sensor, cellular or unknown.
	"""
	if not model:
		return "unknown"
	model = model.strip().upper()
	for prefix, device_type in _DEVICE_TYPE_PREFIXES:
		if model.startswith(prefix):
			return device_type
	if model.startswith("Z") or "CAPTIVE" in model:
		return "appliance"
	return "unknown"


#============================================
def element_source(element: TemplateElement) -> str:
	"""
	Reference that feeds a QR or image element's data, or empty text.
	"""
	if element.data_source:
		return normalize_reference(element.data_source)
	if element.custom_image_id is not None:
		return f"{CUSTOM_IMAGE_PREFIX}.{CUSTOM_IMAGE_FIELD_PREFIX}{element.custom_image_id}"
	return ""


#============================================
def element_references(element: TemplateElement) -> list[str]:
	"""
	List the references one element declares, in document order.

	Args:
		element: Template element.

	Returns:
		Normalized references (may contain duplicates).
	"""
	references: list[str] = []
	source = element_source(element)
	if source:
		references.append(source)
	if element.kind == KIND_TEXT and element.data_binding:
		references.append(normalize_reference(element.data_binding))
	if element.text:
		for match in REFERENCE_PATTERN.finditer(element.text):
			references.append(normalize_reference(match.group(1)))
	return [reference for reference in references if reference]


#============================================
def extract_references(document: TemplateDocument) -> set[str]:
	"""
	Collect the distinct references used anywhere in a document.

	Args:
		document: Template document.

	Returns:
		Set of lowercase references.
	"""
	references: set[str] = set()
	for element in document.elements:
		references.update(element_references(element))
	return references


#============================================
def referenced_image_ids(references: set[str] | list[str]) -> list[int]:
	"""
	Pick the uploaded image ids out of a set of references.

	Args:
		references: References such as customimage.image_42.

	Returns:
		Sorted image ids.
	"""
	image_ids = set()
	for reference in references:
		match = CUSTOM_IMAGE_PATTERN.match(normalize_reference(reference))
		if match:
			image_ids.add(int(match.group(1)))
	return sorted(image_ids)


#============================================
def _qr_value(
	precomputed: str | None,
	content: str | None,
	qr_generator: QrGenerator,
) -> str | None:
	"""
	Pick a stored QR data-URI or generate one from the content.
	"""
	if precomputed:
		return precomputed
	if content is None or not content.strip():
		return None
	return qr_generator(content)


#============================================
def build_binding_context(
	device: Device,
	network: Network | None = None,
	organization: Organization | None = None,
	global_variables: dict[str, str] | None = None,
	images: list[UploadedImage] | None = None,
	scope: Scope | None = None,
	qr_generator: QrGenerator = qse.qr.generate_qr_data_uri,
) -> BindingContext:
	"""
	Build the binding context for one device.

	Every *.qrcode field holds image data; the text it encodes stays
	available under the plain field (device.serial, network.url, ...).
	Soft-deleted uploaded images are never exposed.

	Args:
		device: Device being exported.
		network: Network record for the device, if any.
		organization: Organization record for the network, if any.
		global_variables: User-defined variables for the scope.
		images: Uploaded images for the scope.
		scope: Owning scope (connection), for connection.* fields.
		qr_generator: Content -> data-URI callable.

	Returns:
		BindingContext.
	"""
	context = BindingContext()
	tags = ", ".join(device.tags)
	context.update(
		"device",
		{
			"id": device.id,
			"serial": device.serial or "",
			"name": device.name or UNNAMED_DEVICE,
			"mac": device.mac,
			"model": device.model or "",
			"producttype": device.classification or "unknown",
			"classification": device.classification or "",
			"type": derive_device_type(device.model),
			"status": device.status or "unknown",
			"firmware": device.firmware,
			"tags": tags,
			"tags_str": tags,
			"networkid": device.network_id or "",
			"connectionid": device.scope_id,
			"qrcode": _qr_value(device.qr_code_data_uri, device.serial, qr_generator),
		},
	)

	if network is not None:
		context.update(
			"network",
			{
				"id": network.id,
				"networkid": network.network_id,
				"name": network.name,
				"organizationid": network.organization_id,
				"url": network.url,
				"qrcode": _qr_value(network.qr_code_data_uri, network.url, qr_generator),
			},
		)

	if organization is not None:
		context.update(
			"organization",
			{
				"id": organization.id,
				"organizationid": organization.organization_id,
				"name": organization.name,
				"url": organization.url,
				"qrcode": _qr_value(organization.qr_code_data_uri, organization.url, qr_generator),
			},
		)

	if scope is not None:
		context.update(
			"connection",
			{
				"id": scope.id,
				"displayname": scope.display_name,
				"type": scope.kind,
				"companylogourl": scope.company_logo_url,
			},
		)

	context.update("global", dict(global_variables or {}))

	context.update(CUSTOM_IMAGE_PREFIX, {})
	for image in images or []:
		if image.is_deleted:
			continue
		context.set(CUSTOM_IMAGE_PREFIX, f"{CUSTOM_IMAGE_FIELD_PREFIX}{image.id}", image.data_uri)
	return context


#============================================
def build_preview_context(
	document: TemplateDocument,
	images: list[UploadedImage] | None = None,
	qr_generator: QrGenerator = qse.qr.generate_qr_data_uri,
) -> BindingContext:
	"""
	Build a context of realistic sample values for template previews.

	Only references with a known sample are bound; everything else is
	left for merge_document to replace with a bracketed placeholder.

	Args:
		document: Template document to preview.
		images: Uploaded images for the scope.
		qr_generator: Content -> data-URI callable for sample QR codes.

	Returns:
		BindingContext.
	"""
	context = BindingContext()
	for reference in sorted(extract_references(document)):
		prefix, field = split_reference(reference)
		if reference in PREVIEW_VALUES:
			context.set(prefix, field, PREVIEW_VALUES[reference])
		elif reference in QR_PREVIEW_CONTENT:
			context.set(prefix, field, qr_generator(QR_PREVIEW_CONTENT[reference]))
	for image in images or []:
		if image.is_deleted:
			continue
		context.set(CUSTOM_IMAGE_PREFIX, f"{CUSTOM_IMAGE_FIELD_PREFIX}{image.id}", image.data_uri)
	return context


#============================================
def resolve_reference(reference: str, context: BindingContext, missing: set[str]) -> str:
	"""
	Resolve one reference, recording it as missing when unbound.

	Args:
		reference: Reference text in any case.
		context: Binding context.
		missing: Set collecting unbound references.

	Returns:
		Bound value or bracketed placeholder.
	"""
	value = context.lookup(reference)
	if value is None:
		missing.add(normalize_reference(reference))
		return placeholder_for(reference)
	return value


#============================================
def neutralize_braces(text: str) -> str:
	"""
	Remove any {{...}} left in text after substitution.

	Leftover runs, whether pasted in from a bound value or left by a
	malformed or nested run, become bracketed placeholders. Unpaired
	doubled braces collapse to single braces.
	"""
	previous = None
	while previous != text:
		previous = text
		text = REFERENCE_PATTERN.sub(_leftover_placeholder, text)
	text = _OPEN_BRACES_PATTERN.sub("{", text)
	return _CLOSE_BRACES_PATTERN.sub("}", text)


#============================================
def _leftover_placeholder(match: re.Match) -> str:
	inner = normalize_reference(match.group(1))
	if not inner:
		return ""
	return placeholder_for(inner)


#============================================
def substitute_text(text: str, context: BindingContext, missing: set[str]) -> str:
	"""
	Replace every {{...}} run in a text value.

	Runs are resolved in one pass over the template text; bound values are
	never scanned for further references. Empty runs are dropped.
	"""
	def replace(match: re.Match) -> str:
		reference = match.group(1)
		if not normalize_reference(reference):
			return ""
		return resolve_reference(reference, context, missing)

	return neutralize_braces(REFERENCE_PATTERN.sub(replace, text))


#============================================
def merge_document(document: TemplateDocument, context: BindingContext) -> ResolvedDocument:
	"""
	Produce a copy of a document with every reference resolved.

	Args:
		document: Template document; not modified.
		context: Binding context for one device.

	Returns:
		ResolvedDocument holding the merged copy and the unbound references.
	"""
	merged = qse.document.clone_document(document)
	missing: set[str] = set()
	for element in merged.elements:
		if element.kind == KIND_TEXT:
			binding = element.data_binding or element.data_source
			if binding:
				element.text = neutralize_braces(resolve_reference(binding, context, missing))
			elif element.text:
				element.text = substitute_text(element.text, context, missing)
			continue
		source = element_source(element)
		if source:
			element.data = neutralize_braces(resolve_reference(source, context, missing))
		if element.text:
			element.text = substitute_text(element.text, context, missing)
	return ResolvedDocument(document=merged, missing=missing)
