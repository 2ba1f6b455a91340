import pytest

import qrsticker_engine.document
import qrsticker_engine.models


#============================================
def make_template(compatible) -> qrsticker_engine.models.Template:
	"""
	Build a template with the given compatibility set.
	"""
	return qrsticker_engine.models.Template(
		id=1,
		name="Sample",
		document=qrsticker_engine.document.TemplateDocument(elements=[]),
		compatible_classifications=compatible,
	)


#============================================
def test_universal_template_accepts_any_classification() -> None:
	"""
	No compatibility list means every real classification is accepted.
	"""
	template = make_template(None)
	assert template.is_universal
	assert template.is_compatible_with("switch")
	assert template.is_compatible_with("anything")


#============================================
def test_empty_classification_is_never_compatible() -> None:
	"""
	Blank or missing classifications fail even for universal templates.
	"""
	for template in (make_template(None), make_template(frozenset(["switch"]))):
		assert not template.is_compatible_with(None)
		assert not template.is_compatible_with("")
		assert not template.is_compatible_with("  ")


#============================================
def test_compatibility_ignores_case() -> None:
	"""
	Stored and queried classifications compare without case.
	"""
	template = make_template(frozenset(["Switch", "WIRELESS"]))
	assert template.compatible_classifications == frozenset(["switch", "wireless"])
	assert template.is_compatible_with("SWITCH")
	assert template.is_compatible_with("wireless")
	assert not template.is_compatible_with("camera")


#============================================
def test_blank_compatibility_list_is_universal() -> None:
	"""
	A list of blanks normalizes to universal.
	"""
	template = make_template(frozenset(["", "  "]))
	assert template.compatible_classifications is None
	assert template.is_universal


#============================================
def test_parse_compatibility_json() -> None:
	"""
	The stored JSON list form parses to a lowercase set.
	"""
	parsed = qrsticker_engine.models.parse_compatibility_json('["Switch", "appliance"]')
	assert parsed == frozenset(["switch", "appliance"])
	assert qrsticker_engine.models.parse_compatibility_json(None) is None
	assert qrsticker_engine.models.parse_compatibility_json("") is None
	assert qrsticker_engine.models.parse_compatibility_json("null") is None
	with pytest.raises(ValueError):
		qrsticker_engine.models.parse_compatibility_json('{"switch": true}')


#============================================
def test_compatibility_to_json_is_sorted() -> None:
	"""
	Serialization is stable and None for universal templates.
	"""
	text = qrsticker_engine.models.compatibility_to_json(frozenset(["wireless", "switch"]))
	assert text == '["switch", "wireless"]'
	assert qrsticker_engine.models.compatibility_to_json(None) is None


#============================================
def test_sticker_size_from_template() -> None:
	"""
	Template page size doubles as the sticker size.
	"""
	template = qrsticker_engine.models.Template(
		id=2,
		name="Small",
		document=qrsticker_engine.document.TemplateDocument(elements=[]),
		page_width=60.0,
		page_height=40.0,
	)
	assert template.sticker_size.width == 60.0
	assert template.sticker_size.height == 40.0
	assert template.sticker_size.rotated().width == 40.0
	assert template.is_shared
