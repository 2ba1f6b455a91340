import json

import pytest

import qrsticker_engine.document
import qrsticker_engine.errors


SAMPLE_JSON = json.dumps({
	"version": "5.3.0",
	"pageSize": {"width": 100, "height": 50, "unit": "mm"},
	"background": "#ffffff",
	"objects": [
		{
			"type": "qrcode",
			"id": "qr-1",
			"left": 5,
			"top": 5,
			"width": 40,
			"height": 40,
			"properties": {"dataSource": "device.qrcode", "eccLevel": "Q", "size": 40},
		},
		{
			"type": "i-text",
			"x": 50,
			"y": 8,
			"width": 45,
			"height": 8,
			"text": "{{device.name}}",
			"fontSize": 12,
			"fontWeight": "bold",
			"fill": "#000000",
		},
		{"type": "line", "left": 0, "top": 48, "width": 100, "height": 0, "stroke": "#333333", "strokeWidth": 0.3},
		{"type": "image", "left": 70, "top": 38, "width": 25, "height": 10, "properties": {"customImageId": 7}},
	],
})


#============================================
def test_parse_sample_document() -> None:
	"""
	Parse a designer document with every element kind.
	"""
	document = qrsticker_engine.document.parse_template_document(SAMPLE_JSON)
	assert document.version == "5.3.0"
	assert (document.page_width, document.page_height, document.page_unit) == (100.0, 50.0, "mm")
	assert [element.kind for element in document.elements] == ["qrcode", "text", "line", "image"]

	qr_element = document.elements[0]
	assert qr_element.element_id == "qr-1"
	assert (qr_element.x, qr_element.y, qr_element.width, qr_element.height) == (5.0, 5.0, 40.0, 40.0)
	assert qr_element.data_source == "device.qrcode"
	assert qr_element.extra_properties == {"size": 40}

	text_element = document.elements[1]
	assert text_element.source_type == "i-text"
	assert text_element.x == 50.0
	assert text_element.font_weight == "bold"

	assert document.elements[2].is_shape
	assert document.elements[3].custom_image_id == 7
	assert document.extra == {"background": "#ffffff"}


#============================================
def test_serialize_keeps_bindings() -> None:
	"""
	Serialized documents keep type names, bindings and extra keys.
	"""
	document = qrsticker_engine.document.parse_template_document(SAMPLE_JSON)
	data = qrsticker_engine.document.document_to_dict(document)
	assert data["background"] == "#ffffff"
	assert data["pageSize"] == {"width": 100.0, "height": 50.0, "unit": "mm"}
	assert data["objects"][0]["properties"]["dataSource"] == "device.qrcode"
	assert data["objects"][0]["properties"]["size"] == 40
	assert data["objects"][1]["type"] == "i-text"
	assert data["objects"][3]["properties"]["customImageId"] == 7


#============================================
def test_empty_input_is_empty_document() -> None:
	"""
	Blank text and missing object lists give an empty document.
	"""
	assert qrsticker_engine.document.parse_template_document("").elements == []
	assert qrsticker_engine.document.parse_template_document({}).elements == []
	assert qrsticker_engine.document.parse_template_document({"objects": None}).elements == []


#============================================
def test_bad_json_raises() -> None:
	"""
	Malformed JSON raises DocumentError, which is also a ValueError.
	"""
	with pytest.raises(qrsticker_engine.errors.DocumentError):
		qrsticker_engine.document.parse_template_document("{not json")
	with pytest.raises(ValueError):
		qrsticker_engine.document.parse_template_document("[1, 2]")


#============================================
def test_unknown_element_type_raises() -> None:
	"""
	Element kinds outside the supported set are rejected at load time.
	"""
	with pytest.raises(qrsticker_engine.errors.DocumentError, match="objects\\[0\\]"):
		qrsticker_engine.document.parse_template_document({"objects": [{"type": "group"}]})
	with pytest.raises(qrsticker_engine.errors.DocumentError):
		qrsticker_engine.document.parse_template_document({"objects": [{"left": 1}]})


#============================================
def test_bad_field_types_raise() -> None:
	"""
	Wrong value types and negative sizes are rejected.
	"""
	bad_objects = [
		{"type": "rect", "left": "ten"},
		{"type": "rect", "width": -1},
		{"type": "text", "text": ["a"]},
		{"type": "image", "properties": {"customImageId": "seven"}},
		{"type": "qrcode", "properties": "device.serial"},
	]
	for obj in bad_objects:
		with pytest.raises(qrsticker_engine.errors.DocumentError):
			qrsticker_engine.document.parse_template_document({"objects": [obj]})


#============================================
def test_clone_is_independent() -> None:
	"""
	Changing a clone leaves the source document untouched.
	"""
	document = qrsticker_engine.document.parse_template_document(SAMPLE_JSON)
	clone = qrsticker_engine.document.clone_document(document)
	clone.elements[1].text = "changed"
	clone.elements[0].extra_properties["size"] = 99
	assert document.elements[1].text == "{{device.name}}"
	assert document.elements[0].extra_properties["size"] == 40
