import io
import logging
import re
from typing import Optional

import pytesseract
from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

CAPTCHA_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
TESSERACT_CONFIG = f"--psm 7 -c tessedit_char_whitelist={CAPTCHA_ALPHABET}"


class CaptchaSolver:
    """OCR of short alphanumeric CAPTCHA images (fallback when canvas capture fails)"""

    def __init__(self, min_length: int = 3, max_length: int = 6, keep: int = 4):
        self.min_length = min_length
        self.max_length = max_length
        self.keep = keep

    def solve(self, image_bytes: bytes) -> Optional[str]:
        """
        Read the CAPTCHA text from a PNG/JPEG screenshot

        Returns:
            The first `keep` characters, or None when the OCR output is not
            between min_length and max_length characters
        """
        try:
            image = Image.open(io.BytesIO(image_bytes))
            text = pytesseract.image_to_string(ImageOps.grayscale(image), config=TESSERACT_CONFIG)
        except (pytesseract.TesseractError, OSError) as e:
            logger.warning(f"CAPTCHA OCR failed: {str(e)}")
            return None
        return self.clean(text)

    def clean(self, text: Optional[str]) -> Optional[str]:
        code = re.sub(r"[^a-z0-9]", "", (text or "").strip().lower())
        if self.min_length <= len(code) <= self.max_length:
            return code[:self.keep]
        return None
