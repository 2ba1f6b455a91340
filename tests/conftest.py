"""
Pytest configuration for local imports and shared sample data.
"""

# Standard Library
import json
import os
import sys

# PIP3 modules
import PIL.Image
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

# local repo modules
import qrsticker_engine.qr  # noqa: E402


SAMPLE_DOCUMENT = {
	"version": "5.3.0",
	"pageSize": {"width": 100, "height": 50, "unit": "mm"},
	"objects": [
		{"type": "rect", "left": 0, "top": 0, "width": 100, "height": 50, "stroke": "#000000", "strokeWidth": 0.5},
		{
			"type": "qrcode",
			"left": 5,
			"top": 5,
			"width": 40,
			"height": 40,
			"properties": {"dataSource": "device.qrcode", "eccLevel": "Q"},
		},
		{"type": "i-text", "left": 50, "top": 8, "width": 45, "height": 8, "text": "{{device.name}}", "fontSize": 12, "fontWeight": "bold"},
		{"type": "text", "left": 50, "top": 20, "width": 45, "height": 6, "text": "SN: {{Device.Serial}}", "fontSize": 8},
		{"type": "text", "left": 50, "top": 30, "width": 45, "height": 6, "text": "", "dataBinding": "global.supportUrl", "fontSize": 7},
		{
			"type": "image",
			"left": 70,
			"top": 38,
			"width": 25,
			"height": 10,
			"properties": {"dataSource": "customImage.Image_7", "customImageId": 7},
		},
	],
}

TINY_PNG_DATA_URI = qrsticker_engine.qr.image_to_data_uri(PIL.Image.new("RGB", (8, 8), "#cc0000"))


#============================================
def build_sample_store_data() -> dict:
	"""
	Build a small store: one scope, two networks, five devices, three templates.
	"""
	return {
		"scopes": [
			{"id": 1, "owner_id": "user-1", "display_name": "HQ Network", "company_logo_url": "https://example.com/logo.png"},
			{"id": 2, "owner_id": "user-2", "display_name": "Branch"},
		],
		"organizations": [
			{"id": 10, "scope_id": 1, "organization_id": "org-1", "name": "Example Org", "url": "https://n1.meraki.com/o/org-1"},
		],
		"networks": [
			{"id": 20, "scope_id": 1, "network_id": "net-1", "organization_id": "org-1", "name": "Production Network", "url": "https://n1.meraki.com/net-1"},
		],
		"devices": [
			{"id": 1, "scope_id": 1, "serial": "Q2XX-AAAA-0001", "name": "Core Switch", "model": "MS250-48", "classification": "switch", "network_id": "net-1"},
			{"id": 2, "scope_id": 1, "serial": "Q2XX-AAAA-0002", "name": "Lobby AP", "model": "MR46", "classification": "wireless", "network_id": "net-1"},
			{"id": 3, "scope_id": 1, "serial": "Q2XX-AAAA-0003", "name": None, "model": "MV12", "classification": "camera", "network_id": "net-1"},
			{"id": 4, "scope_id": 1, "serial": "Q2XX-AAAA-0004", "name": "Edge", "model": "MX68", "classification": None, "network_id": None},
			{"id": 5, "scope_id": 2, "serial": "Q2XX-BBBB-0005", "name": "Branch Switch", "model": "MS120", "classification": "switch"},
		],
		"global_variables": [
			{"scope_id": 1, "name": "supportUrl", "value": "support.example.com"},
		],
		"images": [
			{"id": 7, "scope_id": 1, "name": "logo", "data_uri": TINY_PNG_DATA_URI},
			{"id": 8, "scope_id": 1, "name": "old logo", "data_uri": TINY_PNG_DATA_URI, "is_deleted": True},
		],
		"templates": [
			{
				"id": 1,
				"name": "Standard",
				"is_system": True,
				"page_width": 100,
				"page_height": 50,
				"document": SAMPLE_DOCUMENT,
			},
			{
				"id": 2,
				"name": "Switch Small",
				"scope_id": 1,
				"page_width": 60,
				"page_height": 40,
				"compatible_classifications": "[\"switch\"]",
				"document": SAMPLE_DOCUMENT,
			},
			{
				"id": 3,
				"name": "Camera",
				"scope_id": 1,
				"page_width": 60,
				"page_height": 40,
				"compatible_classifications": ["Camera"],
				"document": json.dumps(SAMPLE_DOCUMENT),
			},
		],
		"default_mappings": [
			{"scope_id": 1, "classification": "Switch", "template_id": 2},
		],
	}


#============================================
@pytest.fixture
def store_file(tmp_path) -> str:
	"""
	Write the sample store to a JSON file and return its path.
	"""
	path = tmp_path / "store.json"
	with path.open("w", encoding="utf-8") as handle:
		json.dump(build_sample_store_data(), handle, indent=2, sort_keys=True)
	return str(path)
