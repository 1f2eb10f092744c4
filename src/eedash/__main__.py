"""Allow ``python -m eedash``."""
from __future__ import annotations

from .cli import main

main()
