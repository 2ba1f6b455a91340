"""
Template matching: pick the best template for each device.

Priority chain, first rule wins:
	1. the scope's default mapping for the device classification
	2. the first visible template compatible with the classification
	3. any visible template, shared templates first
"""

# Standard Library
import collections
import dataclasses
import time
from typing import Callable

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config
import qrsticker_engine.errors
import qrsticker_engine.models
import qrsticker_engine.store


Template = qse.models.Template
Device = qse.models.Device
MatchResult = qse.models.MatchResult
TemplateStore = qse.store.TemplateStore
NoTemplatesError = qse.errors.NoTemplatesError
AccessDeniedError = qse.errors.AccessDeniedError

MATCH_CONNECTION_DEFAULT = qse.config.MATCH_CONNECTION_DEFAULT
MATCH_COMPATIBLE = qse.config.MATCH_COMPATIBLE
MATCH_FALLBACK = qse.config.MATCH_FALLBACK
MATCH_FALLBACK_INCOMPATIBLE = qse.config.MATCH_FALLBACK_INCOMPATIBLE
CONFIDENCE_CONNECTION_DEFAULT = qse.config.CONFIDENCE_CONNECTION_DEFAULT
CONFIDENCE_COMPATIBLE = qse.config.CONFIDENCE_COMPATIBLE
CONFIDENCE_FALLBACK = qse.config.CONFIDENCE_FALLBACK
MATCH_CACHE_TTL_SECONDS = qse.config.MATCH_CACHE_TTL_SECONDS


@dataclasses.dataclass
class TemplateFilterResult:
	recommended: Template | None
	compatible: list[Template]
	incompatible: list[Template]


class MatchCache:
	"""
	Match results keyed by (device_id, scope_id) with time-based expiry.

	Entries are never invalidated on template or mapping edits; they age out.
	"""

	def __init__(
		self,
		ttl_seconds: float = MATCH_CACHE_TTL_SECONDS,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.ttl_seconds = ttl_seconds
		self._clock = clock
		self._entries: dict[tuple[int, int], tuple[float, MatchResult]] = {}

	def get(self, device_id: int, scope_id: int) -> MatchResult | None:
		key = (device_id, scope_id)
		entry = self._entries.get(key)
		if entry is None:
			return None
		stored_at, result = entry
		if self._clock() - stored_at >= self.ttl_seconds:
			del self._entries[key]
			return None
		return result

	def put(self, device_id: int, scope_id: int, result: MatchResult) -> None:
		self._entries[(device_id, scope_id)] = (self._clock(), result)

	def clear(self) -> None:
		self._entries.clear()

	def __len__(self) -> int:
		return len(self._entries)


#============================================
def _classification_of(device: Device) -> str:
	return (device.classification or "").strip()


#============================================
def _name_key(template: Template) -> tuple[str, int]:
	return (template.name.lower(), template.id)


#============================================
def select_fallback_template(templates: list[Template]) -> Template:
	"""
	Pick the fallback template: the first shared one, else the first one.

	Args:
		templates: Visible templates in store order, not empty.

	Returns:
		Template.
	"""
	for template in templates:
		if template.is_shared:
			return template
	return templates[0]


#============================================
def match_device(
	device: Device,
	templates: list[Template],
	defaults: dict[str, Template],
) -> MatchResult:
	"""
	Run the priority chain for one device against preloaded data.

	Args:
		device: Device to match.
		templates: Visible templates for the device's scope.
		defaults: Active default mappings, lowercase classification -> Template.

	Returns:
		MatchResult.
	"""
	if not templates:
		raise NoTemplatesError("No templates are available for this scope")

	classification = _classification_of(device)
	if classification:
		default_template = defaults.get(classification.lower())
		if default_template is not None:
			return MatchResult(
				template=default_template,
				match_reason=MATCH_CONNECTION_DEFAULT,
				confidence=CONFIDENCE_CONNECTION_DEFAULT,
				matched_by=classification,
			)
		for template in templates:
			if template.is_compatible_with(classification):
				return MatchResult(
					template=template,
					match_reason=MATCH_COMPATIBLE,
					confidence=CONFIDENCE_COMPATIBLE,
					matched_by=classification,
				)

	reason = MATCH_FALLBACK_INCOMPATIBLE if classification else MATCH_FALLBACK
	return MatchResult(
		template=select_fallback_template(templates),
		match_reason=reason,
		confidence=CONFIDENCE_FALLBACK,
		matched_by=MATCH_FALLBACK,
	)


class TemplateMatcher:
	"""
	Template selection backed by a TemplateStore.
	"""

	def __init__(self, template_store: TemplateStore, cache: MatchCache | None = None) -> None:
		self.template_store = template_store
		self.cache = cache

	def _check_scope(self, device: Device, scope_id: int) -> None:
		if device.scope_id != scope_id:
			raise AccessDeniedError(
				f"Device {device.id} belongs to scope {device.scope_id}, not {scope_id}"
			)

	def match_one(self, device: Device, scope_id: int) -> MatchResult:
		"""
		Match a single device.

		Args:
			device: Device to match.
			scope_id: Scope the device is exported from.

		Returns:
			MatchResult.
		"""
		self._check_scope(device, scope_id)
		if self.cache is not None:
			cached = self.cache.get(device.id, scope_id)
			if cached is not None:
				return cached

		templates = self.template_store.visible_templates(scope_id)
		if not templates:
			raise NoTemplatesError(f"No templates are available for scope {scope_id}")
		classification = _classification_of(device)
		defaults = {}
		if classification:
			default_template = self.template_store.default_mapping(scope_id, classification)
			if default_template is not None:
				defaults[classification.lower()] = default_template

		result = match_device(device, templates, defaults)
		if self.cache is not None:
			self.cache.put(device.id, scope_id, result)
		return result

	def match_batch(
		self,
		devices: list[Device],
		scope_id: int,
		verbose: bool = False,
	) -> dict[int, MatchResult]:
		"""
		Match many devices with one load of templates and mappings.

		Args:
			devices: Devices to match, all from scope_id.
			scope_id: Scope the devices are exported from.
			verbose: Print a summary of match reasons.

		Returns:
			Dict of device id -> MatchResult.
		"""
		if not devices:
			return {}
		for device in devices:
			self._check_scope(device, scope_id)

		templates = self.template_store.visible_templates(scope_id)
		if not templates:
			raise NoTemplatesError(f"No templates are available for scope {scope_id}")
		defaults = self.template_store.default_mappings(scope_id)

		results: dict[int, MatchResult] = {}
		for device in devices:
			result = match_device(device, templates, defaults)
			results[device.id] = result
			if self.cache is not None:
				self.cache.put(device.id, scope_id, result)

		if verbose:
			reasons = collections.Counter(result.match_reason for result in results.values())
			summary = ", ".join(f"{reason}={count}" for reason, count in sorted(reasons.items()))
			print(f"Matched {len(results)} devices against {len(templates)} templates ({summary})")
		return results

	def alternate_templates(
		self,
		device: Device,
		scope_id: int,
		exclude_id: int | None = None,
		compatible_only: bool = False,
	) -> list[Template]:
		"""
		Other templates a user could pick for a device.

		Args:
			device: Device being exported.
			scope_id: Scope the device is exported from.
			exclude_id: Template id to leave out, usually the current match.
			compatible_only: Keep only compatible templates; ignored when
				the device has no classification.

		Returns:
			Templates ordered by name.
		"""
		templates = self.template_store.visible_templates(scope_id)
		classification = _classification_of(device)
		if compatible_only and classification:
			templates = [
				template for template in templates
				if template.is_compatible_with(classification)
			]
		templates = [template for template in templates if template.id != exclude_id]
		return sorted(templates, key=_name_key)

	def compatible_templates(self, scope_id: int, classification: str | None) -> list[Template]:
		"""
		Visible templates compatible with a classification, ordered by name.
		"""
		templates = self.template_store.visible_templates(scope_id)
		compatible = [
			template for template in templates
			if template.is_compatible_with(classification)
		]
		return sorted(compatible, key=_name_key)

	def templates_for_export(self, device: Device, scope_id: int) -> TemplateFilterResult:
		"""
		Group visible templates for an export picker.

		Args:
			device: Device being exported.
			scope_id: Scope the device is exported from.

		Returns:
			TemplateFilterResult with the default mapping template as the
			recommendation and the rest split by compatibility.
		"""
		classification = _classification_of(device)
		recommended = None
		if classification:
			recommended = self.template_store.default_mapping(scope_id, classification)
		recommended_id = recommended.id if recommended is not None else None

		compatible = []
		incompatible = []
		for template in self.template_store.visible_templates(scope_id):
			if template.id == recommended_id:
				continue
			if template.is_compatible_with(classification):
				compatible.append(template)
			else:
				incompatible.append(template)
		return TemplateFilterResult(
			recommended=recommended,
			compatible=sorted(compatible, key=_name_key),
			incompatible=sorted(incompatible, key=_name_key),
		)
