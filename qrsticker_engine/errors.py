"""
Error types raised by the matching, binding and layout code.
"""


class StickerEngineError(Exception):
	"""
	Base class for engine errors.
	"""


class NoTemplatesError(StickerEngineError):
	"""
	No template is visible to a scope. Missing seed data, not retryable.
	"""


class NotFoundError(StickerEngineError):
	"""
	A device, scope or connection reference does not resolve.
	"""


class AccessDeniedError(StickerEngineError):
	"""
	A reference resolves outside the caller's authorized scope.
	"""


class DocumentError(StickerEngineError, ValueError):
	"""
	A template document does not have the expected shape.
	"""


class StickerFitError(StickerEngineError):
	"""
	A sticker does not fit the page in either orientation.
	"""

	def __init__(
		self,
		sticker_width: float,
		sticker_height: float,
		usable_width: float,
		usable_height: float,
		page_name: str = "",
		device_ref: object = None,
	) -> None:
		self.sticker_width = sticker_width
		self.sticker_height = sticker_height
		self.usable_width = usable_width
		self.usable_height = usable_height
		self.page_name = page_name
		self.device_ref = device_ref
		message = (
			f"Sticker {sticker_width:.1f}mm x {sticker_height:.1f}mm does not fit "
			f"page {page_name or '?'} (usable area {usable_width:.1f}mm x {usable_height:.1f}mm) "
			"in either orientation"
		)
		if device_ref is not None:
			message += f" [device {device_ref}]"
		super().__init__(message)
