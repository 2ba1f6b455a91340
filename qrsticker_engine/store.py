"""
In-memory stores for templates, default mappings and inventory records.

The stores stand in for the persistence collaborators. Each public query
counts its calls so callers can check how often the backing data was read.
"""

# Standard Library
import dataclasses
import datetime
import json
import pathlib

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.document
import qrsticker_engine.errors
import qrsticker_engine.models


Template = qse.models.Template
DefaultMapping = qse.models.DefaultMapping
Device = qse.models.Device
Network = qse.models.Network
Organization = qse.models.Organization
Scope = qse.models.Scope
UploadedImage = qse.models.UploadedImage
NotFoundError = qse.errors.NotFoundError


class TemplateStore:
	"""
	Templates and per-scope default mappings.

	Templates are returned in insertion order. Mappings are keyed by
	(scope_id, lowercase classification), so each scope holds at most one
	mapping per classification.
	"""

	def __init__(self) -> None:
		self._templates: dict[int, Template] = {}
		self._mappings: dict[tuple[int, str], DefaultMapping] = {}
		self.template_fetch_count = 0
		self.mapping_fetch_count = 0

	def add_template(self, template: Template) -> Template:
		if template.id in self._templates:
			raise ValueError(f"Duplicate template id {template.id}")
		self._templates[template.id] = template
		return template

	def get_template(self, template_id: int) -> Template | None:
		return self._templates.get(template_id)

	def visible_templates(self, scope_id: int) -> list[Template]:
		"""
		Templates a scope may use: its own plus the shared ones.

		Args:
			scope_id: Owning scope id.

		Returns:
			List of templates in insertion order.
		"""
		self.template_fetch_count += 1
		return [
			template for template in self._templates.values()
			if template.scope_id is None or template.scope_id == scope_id
		]

	def set_default_mapping(
		self,
		scope_id: int,
		classification: str,
		template_id: int | None,
	) -> DefaultMapping:
		"""
		Create or replace the default template for a classification.

		Args:
			scope_id: Owning scope id.
			classification: Device classification, any case.
			template_id: Template id, or None to deactivate the mapping.

		Returns:
			The stored DefaultMapping.
		"""
		key = classification.strip().lower()
		if not key:
			raise ValueError("Default mapping needs a classification")
		if template_id is not None:
			template = self._templates.get(template_id)
			if template is None:
				raise NotFoundError(f"Template {template_id} not found")
			if template.scope_id is not None and template.scope_id != scope_id:
				raise NotFoundError(f"Template {template_id} not visible to scope {scope_id}")
		mapping = DefaultMapping(scope_id=scope_id, classification=key, template_id=template_id)
		self._mappings[(scope_id, key)] = mapping
		return mapping

	def default_mapping(self, scope_id: int, classification: str | None) -> Template | None:
		"""
		Template of the active default mapping for one classification.
		"""
		self.mapping_fetch_count += 1
		if not classification or not classification.strip():
			return None
		mapping = self._mappings.get((scope_id, classification.strip().lower()))
		if mapping is None or not mapping.is_active:
			return None
		return self._templates.get(mapping.template_id)

	def default_mappings(self, scope_id: int) -> dict[str, Template]:
		"""
		All active default mappings of a scope.

		Args:
			scope_id: Owning scope id.

		Returns:
			Dict of lowercase classification -> Template.
		"""
		self.mapping_fetch_count += 1
		defaults = {}
		for (mapping_scope, key), mapping in self._mappings.items():
			if mapping_scope != scope_id or not mapping.is_active:
				continue
			template = self._templates.get(mapping.template_id)
			if template is not None:
				defaults[key] = template
		return defaults


class InventoryStore:
	"""
	Scopes and the device inventory synced into them.
	"""

	def __init__(self) -> None:
		self._scopes: dict[int, Scope] = {}
		self._devices: dict[int, Device] = {}
		self._networks: dict[tuple[int, str], Network] = {}
		self._organizations: dict[tuple[int, str], Organization] = {}
		self._globals: dict[int, dict[str, str]] = {}
		self._images: dict[int, UploadedImage] = {}
		self.global_fetch_count = 0
		self.image_fetch_count = 0

	def add_scope(self, scope: Scope) -> Scope:
		self._scopes[scope.id] = scope
		return scope

	def add_device(self, device: Device) -> Device:
		self._devices[device.id] = device
		return device

	def add_network(self, network: Network) -> Network:
		self._networks[(network.scope_id, network.network_id)] = network
		return network

	def add_organization(self, organization: Organization) -> Organization:
		self._organizations[(organization.scope_id, organization.organization_id)] = organization
		return organization

	def add_image(self, image: UploadedImage) -> UploadedImage:
		self._images[image.id] = image
		return image

	def set_global_variable(self, scope_id: int, name: str, value: str) -> None:
		self._globals.setdefault(scope_id, {})[name] = value

	def get_scope(self, scope_id: int) -> Scope | None:
		return self._scopes.get(scope_id)

	def get_device(self, device_id: int) -> Device | None:
		device = self._devices.get(device_id)
		if device is None or device.is_deleted:
			return None
		return device

	def get_network(self, scope_id: int, network_id: str | None) -> Network | None:
		if not network_id:
			return None
		return self._networks.get((scope_id, network_id))

	def get_organization(self, scope_id: int, organization_id: str | None) -> Organization | None:
		if not organization_id:
			return None
		return self._organizations.get((scope_id, organization_id))

	def devices_for_scope(self, scope_id: int) -> list[Device]:
		devices = [
			device for device in self._devices.values()
			if device.scope_id == scope_id and not device.is_deleted
		]
		devices.sort(key=lambda device: device.id)
		return devices

	def global_variables(self, scope_id: int) -> dict[str, str]:
		self.global_fetch_count += 1
		return dict(self._globals.get(scope_id, {}))

	def images(self, scope_id: int) -> list[UploadedImage]:
		"""
		Non-deleted uploaded images of a scope, ordered by id.
		"""
		self.image_fetch_count += 1
		images = [
			image for image in self._images.values()
			if image.scope_id == scope_id and not image.is_deleted
		]
		images.sort(key=lambda image: image.id)
		return images

	def track_image_usage(
		self,
		image_ids: list[int],
		when: datetime.datetime | None = None,
	) -> list[UploadedImage]:
		"""
		Stamp the last-used time of images referenced by an export.

		Args:
			image_ids: Image ids; unknown ids are skipped.
			when: Timestamp, defaults to now in UTC.

		Returns:
			The stamped images, in the order given.
		"""
		if when is None:
			when = datetime.datetime.now(datetime.timezone.utc)
		updated = []
		for image_id in image_ids:
			image = self._images.get(image_id)
			if image is None:
				continue
			image.last_used_at = when
			updated.append(image)
		return updated


#============================================
def _build_record(record_type: type, data: dict, where: str):
	"""
	Build a dataclass record from a dict, ignoring unknown keys.

	Args:
		record_type: Dataclass type.
		data: Source dict.
		where: Location text for error messages.

	Returns:
		Instance of record_type.
	"""
	if not isinstance(data, dict):
		raise ValueError(f"{where}: expected an object")
	names = {field.name for field in dataclasses.fields(record_type)}
	values = {key: value for key, value in data.items() if key in names}
	try:
		return record_type(**values)
	except TypeError as error:
		raise ValueError(f"{where}: {error}") from error


#============================================
def build_template(data: dict, index: int) -> Template:
	"""
	Build a Template from its stored form.

	Args:
		data: Template dict; 'document' may be an object or JSON text and
			'compatible_classifications' a list or JSON list text.
		index: Position in the templates list, for error messages.

	Returns:
		Template.
	"""
	where = f"templates[{index}]"
	if not isinstance(data, dict):
		raise ValueError(f"{where}: expected an object")
	compatible = data.get("compatible_classifications")
	if isinstance(compatible, str):
		compatible = qse.models.parse_compatibility_json(compatible)
	elif compatible is not None:
		compatible = qse.models.normalize_classifications(compatible)
	values = dict(data)
	values["document"] = qse.document.parse_template_document(data.get("document") or {})
	values["compatible_classifications"] = compatible
	return _build_record(Template, values, where)


#============================================
def load_store_file(path: pathlib.Path | str) -> tuple[TemplateStore, InventoryStore]:
	"""
	Load templates, mappings and inventory from one JSON file.

	Args:
		path: JSON file with scopes, organizations, networks, devices,
			global_variables, images, templates and default_mappings lists.

	Returns:
		Tuple of (TemplateStore, InventoryStore).
	"""
	path = pathlib.Path(path)
	with path.open("r", encoding="utf-8") as handle:
		data = json.load(handle)
	if not isinstance(data, dict):
		raise ValueError(f"{path}: expected a JSON object")

	template_store = TemplateStore()
	inventory = InventoryStore()
	for index, record in enumerate(data.get("scopes", [])):
		inventory.add_scope(_build_record(Scope, record, f"scopes[{index}]"))
	for index, record in enumerate(data.get("organizations", [])):
		inventory.add_organization(_build_record(Organization, record, f"organizations[{index}]"))
	for index, record in enumerate(data.get("networks", [])):
		inventory.add_network(_build_record(Network, record, f"networks[{index}]"))
	for index, record in enumerate(data.get("devices", [])):
		inventory.add_device(_build_record(Device, record, f"devices[{index}]"))
	for index, record in enumerate(data.get("images", [])):
		inventory.add_image(_build_record(UploadedImage, record, f"images[{index}]"))
	for record in data.get("global_variables", []):
		inventory.set_global_variable(record["scope_id"], record["name"], record["value"])
	for index, record in enumerate(data.get("templates", [])):
		template_store.add_template(build_template(record, index))
	for record in data.get("default_mappings", []):
		template_store.set_default_mapping(
			record["scope_id"],
			record["classification"],
			record.get("template_id"),
		)
	return (template_store, inventory)
