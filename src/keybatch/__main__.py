from __future__ import annotations

from keybatch.ui.cli import run

run()
