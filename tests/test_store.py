import datetime

import pytest

import qrsticker_engine.document
import qrsticker_engine.errors
import qrsticker_engine.models
import qrsticker_engine.store


#============================================
def test_load_store_file(store_file: str) -> None:
	"""
	Every record type loads from the JSON store file.
	"""
	template_store, inventory = qrsticker_engine.store.load_store_file(store_file)

	assert inventory.get_scope(1).owner_id == "user-1"
	assert [device.id for device in inventory.devices_for_scope(1)] == [1, 2, 3, 4]
	assert inventory.get_network(1, "net-1").name == "Production Network"
	assert inventory.get_organization(1, "org-1").name == "Example Org"
	assert inventory.global_variables(1) == {"supportUrl": "support.example.com"}
	assert [image.id for image in inventory.images(1)] == [7]

	names = [template.name for template in template_store.visible_templates(1)]
	assert names == ["Standard", "Switch Small", "Camera"]
	assert [template.name for template in template_store.visible_templates(2)] == ["Standard"]
	assert template_store.get_template(2).compatible_classifications == frozenset(["switch"])
	assert template_store.get_template(3).compatible_classifications == frozenset(["camera"])
	assert len(template_store.get_template(3).document.elements) == 6


#============================================
def test_default_mappings(store_file: str) -> None:
	"""
	Default mappings are keyed by lowercase classification per scope.
	"""
	template_store, _inventory = qrsticker_engine.store.load_store_file(store_file)
	assert template_store.default_mapping(1, "SWITCH").id == 2
	assert template_store.default_mapping(1, "wireless") is None
	assert template_store.default_mapping(1, None) is None
	assert template_store.default_mapping(2, "switch") is None
	assert set(template_store.default_mappings(1)) == {"switch"}


#============================================
def test_one_mapping_per_classification() -> None:
	"""
	Setting a mapping again replaces the earlier one.
	"""
	store = qrsticker_engine.store.TemplateStore()
	for template_id in (1, 2):
		store.add_template(
			qrsticker_engine.models.Template(
				id=template_id,
				name=f"Template {template_id}",
				document=qrsticker_engine.document.TemplateDocument(elements=[]),
			)
		)
	store.set_default_mapping(1, "Switch", 1)
	store.set_default_mapping(1, "switch", 2)
	assert store.default_mappings(1) == {"switch": store.get_template(2)}

	store.set_default_mapping(1, "SWITCH", None)
	assert store.default_mappings(1) == {}


#============================================
def test_mapping_rejects_unknown_or_foreign_templates() -> None:
	"""
	A mapping must point at a template visible to its scope.
	"""
	store = qrsticker_engine.store.TemplateStore()
	store.add_template(
		qrsticker_engine.models.Template(
			id=1,
			name="Foreign",
			document=qrsticker_engine.document.TemplateDocument(elements=[]),
			scope_id=2,
		)
	)
	with pytest.raises(qrsticker_engine.errors.NotFoundError):
		store.set_default_mapping(1, "switch", 99)
	with pytest.raises(qrsticker_engine.errors.NotFoundError):
		store.set_default_mapping(1, "switch", 1)
	with pytest.raises(ValueError):
		store.set_default_mapping(1, " ", None)
	with pytest.raises(ValueError):
		store.add_template(store.get_template(1))


#============================================
def test_track_image_usage(store_file: str) -> None:
	"""
	Usage tracking stamps known images and skips unknown ids.
	"""
	_template_store, inventory = qrsticker_engine.store.load_store_file(store_file)
	when = datetime.datetime(2026, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
	stamped = inventory.track_image_usage([7, 99], when=when)
	assert [image.id for image in stamped] == [7]
	assert inventory.images(1)[0].last_used_at == when
	assert inventory.track_image_usage([]) == []


#============================================
def test_bad_store_records_raise(tmp_path) -> None:
	"""
	Records missing required fields are reported with their location.
	"""
	path = tmp_path / "bad.json"
	path.write_text('{"devices": [{"id": 1}]}', encoding="utf-8")
	with pytest.raises(ValueError, match="devices\\[0\\]"):
		qrsticker_engine.store.load_store_file(path)
