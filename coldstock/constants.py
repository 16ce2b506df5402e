"""Infrastructure and technical constants."""

from typing import Final

# Technical configuration constants
MIN_SECRET_KEY_LENGTH: Final = 32
DEFAULT_PORT: Final = 8000
DEFAULT_PAGE_SIZE: Final = 20
MAX_PAGE_SIZE: Final = 100
