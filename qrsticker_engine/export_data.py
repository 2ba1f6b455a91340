"""
Gather everything an export needs for one device or a batch of devices.
"""

# Standard Library
import dataclasses

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.bindings
import qrsticker_engine.document
import qrsticker_engine.errors
import qrsticker_engine.matching
import qrsticker_engine.models
import qrsticker_engine.qr
import qrsticker_engine.store


Device = qse.models.Device
Network = qse.models.Network
Organization = qse.models.Organization
Scope = qse.models.Scope
Template = qse.models.Template
UploadedImage = qse.models.UploadedImage
MatchResult = qse.models.MatchResult
BindingContext = qse.bindings.BindingContext
InventoryStore = qse.store.InventoryStore
TemplateFilterResult = qse.matching.TemplateFilterResult
NotFoundError = qse.errors.NotFoundError
AccessDeniedError = qse.errors.AccessDeniedError


@dataclasses.dataclass
class ExportContext:
	device: Device
	scope: Scope
	network: Network | None
	organization: Organization | None
	global_variables: dict[str, str]
	images: list[UploadedImage]
	match: MatchResult | None = None


#============================================
def _require_scope(inventory: InventoryStore, scope_id: int, user_id: str | None) -> Scope:
	"""
	Load a scope and check that the caller owns it.

	Args:
		inventory: Inventory store.
		scope_id: Scope id.
		user_id: Caller id; None skips the ownership check.

	Returns:
		Scope.
	"""
	scope = inventory.get_scope(scope_id)
	if scope is None:
		raise NotFoundError(f"Scope {scope_id} not found")
	if user_id is not None and scope.owner_id != user_id:
		raise AccessDeniedError(f"User {user_id} may not export from scope {scope_id}")
	return scope


#============================================
def get_device_export_context(
	inventory: InventoryStore,
	device_id: int,
	scope_id: int,
	user_id: str | None,
) -> ExportContext:
	"""
	Collect the records needed to export one device.

	Args:
		inventory: Inventory store.
		device_id: Device id.
		scope_id: Scope the device must belong to.
		user_id: Caller id, must own the scope.

	Returns:
		ExportContext.
	"""
	device = inventory.get_device(device_id)
	if device is None or device.scope_id != scope_id:
		raise NotFoundError(f"Device {device_id} not found in scope {scope_id}")
	scope = _require_scope(inventory, scope_id, user_id)

	network = inventory.get_network(scope_id, device.network_id)
	organization = None
	if network is not None:
		organization = inventory.get_organization(scope_id, network.organization_id)
	return ExportContext(
		device=device,
		scope=scope,
		network=network,
		organization=organization,
		global_variables=inventory.global_variables(scope_id),
		images=inventory.images(scope_id),
	)


#============================================
def get_bulk_export_contexts(
	inventory: InventoryStore,
	device_ids: list[int],
	scope_id: int,
	user_id: str | None,
	verbose: bool = False,
) -> list[ExportContext]:
	"""
	Collect export records for many devices of one scope.

	Global variables and images are loaded once and the same objects are
	shared by every returned context.

	Args:
		inventory: Inventory store.
		device_ids: Device ids, in export order.
		scope_id: Scope every device must belong to.
		user_id: Caller id, must own the scope.
		verbose: Print progress.

	Returns:
		List of ExportContext, in device_ids order.
	"""
	scope = _require_scope(inventory, scope_id, user_id)
	if not device_ids:
		raise NotFoundError("No devices requested")

	devices = []
	missing_ids = []
	for device_id in device_ids:
		device = inventory.get_device(device_id)
		if device is None or device.scope_id != scope_id:
			missing_ids.append(device_id)
			continue
		devices.append(device)
	if missing_ids:
		missing_text = ", ".join(str(device_id) for device_id in missing_ids)
		raise NotFoundError(f"Devices not found in scope {scope_id}: {missing_text}")

	global_variables = inventory.global_variables(scope_id)
	images = inventory.images(scope_id)
	networks: dict[str, Network | None] = {}
	organizations: dict[str, Organization | None] = {}

	contexts = []
	for device in devices:
		network_key = device.network_id or ""
		if network_key not in networks:
			networks[network_key] = inventory.get_network(scope_id, device.network_id)
		network = networks[network_key]
		organization = None
		if network is not None:
			org_key = network.organization_id
			if org_key not in organizations:
				organizations[org_key] = inventory.get_organization(scope_id, org_key)
			organization = organizations[org_key]
		contexts.append(
			ExportContext(
				device=device,
				scope=scope,
				network=network,
				organization=organization,
				global_variables=global_variables,
				images=images,
			)
		)
	if verbose:
		print(
			f"Export contexts: {len(contexts)} devices, "
			f"{len([n for n in networks.values() if n])} networks, "
			f"{len(global_variables)} globals, {len(images)} images"
		)
	return contexts


#============================================
def build_context_for_export(
	context: ExportContext,
	qr_generator=qse.qr.generate_qr_data_uri,
) -> BindingContext:
	"""
	Binding context for the device held by an ExportContext.
	"""
	return qse.bindings.build_binding_context(
		context.device,
		network=context.network,
		organization=context.organization,
		global_variables=context.global_variables,
		images=context.images,
		scope=context.scope,
		qr_generator=qr_generator,
	)


#============================================
def template_ref(template: Template) -> str:
	return f"tpl_{template.id}"


#============================================
def network_ref(network: Network) -> str:
	return f"net_{network.id}"


#============================================
def organization_ref(organization: Organization) -> str:
	return f"org_{organization.id}"


#============================================
def template_summary(template: Template) -> dict:
	"""
	Serializable summary of a template, document included.
	"""
	return {
		"id": template.id,
		"name": template.name,
		"description": template.description,
		"is_system": template.is_system,
		"scope_id": template.scope_id,
		"page_width": template.page_width,
		"page_height": template.page_height,
		"compatible_classifications": sorted(template.compatible_classifications or []),
		"document": qse.document.document_to_dict(template.document),
	}


#============================================
def build_template_options(filter_result: TemplateFilterResult, matched_template_id: int | None) -> list[dict]:
	"""
	Flatten a TemplateFilterResult into picker options.

	The matched template is left out; it is already the current choice.

	Args:
		filter_result: Grouped templates for a device.
		matched_template_id: Id of the template the device matched.

	Returns:
		List of option dicts: template, category, is_recommended, is_compatible.
	"""
	options = []
	recommended = filter_result.recommended
	if recommended is not None and recommended.id != matched_template_id:
		options.append({
			"template": {"id": recommended.id, "name": recommended.name},
			"category": "recommended",
			"is_recommended": True,
			"is_compatible": True,
		})
	groups = (
		("compatible", True, filter_result.compatible),
		("incompatible", False, filter_result.incompatible),
	)
	for category, is_compatible, templates in groups:
		for template in templates:
			if template.id == matched_template_id:
				continue
			options.append({
				"template": {"id": template.id, "name": template.name},
				"category": category,
				"is_recommended": False,
				"is_compatible": is_compatible,
			})
	return options


#============================================
def build_bulk_export_response(
	contexts: list[ExportContext],
	matches: dict[int, MatchResult],
	filters_by_classification: dict[str, TemplateFilterResult] | None = None,
) -> dict:
	"""
	Build a reference-based payload for a bulk export.

	Templates, networks and organizations are stored once and devices point
	at them through tpl_<id>, net_<id> and org_<id> references.

	Args:
		contexts: Export contexts from get_bulk_export_contexts.
		matches: Device id -> MatchResult from match_batch.
		filters_by_classification: Optional template groups per lowercase
			classification, used for each device's alternate options.

	Returns:
		Dict with devices, templates, networks, organizations, connection,
		global_variables and images.
	"""
	filters_by_classification = filters_by_classification or {}
	devices = {}
	templates = {}
	networks = {}
	organizations = {}
	scope = None
	global_variables: dict[str, str] = {}
	images: list[UploadedImage] = []

	for context in contexts:
		device = context.device
		scope = context.scope
		global_variables = context.global_variables
		images = context.images

		net_ref = None
		if context.network is not None:
			net_ref = network_ref(context.network)
			networks.setdefault(net_ref, {
				"id": context.network.id,
				"network_id": context.network.network_id,
				"name": context.network.name,
				"organization_id": context.network.organization_id,
				"url": context.network.url,
			})
		org_ref = None
		if context.organization is not None:
			org_ref = organization_ref(context.organization)
			organizations.setdefault(org_ref, {
				"id": context.organization.id,
				"organization_id": context.organization.organization_id,
				"name": context.organization.name,
				"url": context.organization.url,
			})

		match = matches.get(device.id)
		tpl_ref = None
		options = []
		if match is not None:
			tpl_ref = template_ref(match.template)
			if tpl_ref not in templates:
				templates[tpl_ref] = template_summary(match.template)
			classification = (device.classification or "").strip().lower()
			filter_result = filters_by_classification.get(classification)
			if filter_result is not None:
				options = build_template_options(filter_result, match.template.id)

		devices[str(device.id)] = {
			"id": device.id,
			"serial": device.serial,
			"name": device.name,
			"model": device.model,
			"classification": device.classification,
			"network_ref": net_ref,
			"organization_ref": org_ref,
			"matched_template_ref": tpl_ref,
			"match_reason": match.match_reason if match else None,
			"confidence": match.confidence if match else None,
			"alternate_templates": options,
		}

	connection = None
	if scope is not None:
		connection = {
			"id": scope.id,
			"display_name": scope.display_name,
			"type": scope.kind,
			"company_logo_url": scope.company_logo_url,
		}
	return {
		"devices": devices,
		"templates": templates,
		"networks": networks,
		"organizations": organizations,
		"connection": connection,
		"global_variables": dict(global_variables),
		"images": [
			{"id": image.id, "name": image.name, "width_px": image.width_px, "height_px": image.height_px}
			for image in images
		],
	}
