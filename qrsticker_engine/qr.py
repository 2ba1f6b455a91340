"""
QR code images as PNG data-URIs.
"""

# Standard Library
import base64
import io

# PIP3 modules
import PIL.Image
import qrcode
import qrcode.constants
import qrcode.image.pil

# local repo modules
import qrsticker_engine as qse
import qrsticker_engine.config


QR_SIZE_PX = qse.config.QR_SIZE_PX
QR_BORDER_MODULES = qse.config.QR_BORDER_MODULES
DATA_URI_PNG_PREFIX = "data:image/png;base64,"


#============================================
def generate_qr_image(content: str, size_px: int = QR_SIZE_PX) -> PIL.Image.Image:
	"""
	Render content as a QR code image close to the requested size.

	Uses error correction level Q. The module size is the largest whole
	pixel count that keeps the code, quiet zone included, within size_px.

	Args:
		content: Text to encode (serial number, dashboard URL, ...).
		size_px: Target edge length in pixels.

	Returns:
		Square PIL image.
	"""
	code = qrcode.QRCode(
		error_correction=qrcode.constants.ERROR_CORRECT_Q,
		box_size=1,
		border=QR_BORDER_MODULES,
		image_factory=qrcode.image.pil.PilImage,
	)
	code.add_data(content)
	code.make(fit=True)
	module_count = code.modules_count + 2 * QR_BORDER_MODULES
	code.box_size = max(1, size_px // module_count)
	image = code.make_image(fill_color="black", back_color="white")
	return image.get_image()


#============================================
def image_to_data_uri(image: PIL.Image.Image) -> str:
	"""
	Encode a PIL image as a PNG data-URI.
	"""
	buffer = io.BytesIO()
	image.save(buffer, format="PNG")
	encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
	return DATA_URI_PNG_PREFIX + encoded


#============================================
def generate_qr_data_uri(content: str | None, size_px: int = QR_SIZE_PX) -> str | None:
	"""
	Generate a QR code as a PNG data-URI.

	Args:
		content: Text to encode.
		size_px: Target edge length in pixels.

	Returns:
		Data-URI string, or None when content is empty or whitespace.
	"""
	if content is None or not content.strip():
		return None
	image = generate_qr_image(content, size_px)
	return image_to_data_uri(image)


#============================================
def should_regenerate_qr(old_content: str | None, new_content: str | None) -> bool:
	"""
	Decide whether a stored QR image is stale.

	Args:
		old_content: Content the stored image encodes.
		new_content: Current content.

	Returns:
		True when the content was added, removed or changed.
	"""
	return old_content != new_content
