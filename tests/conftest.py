"""Test harness setup: run Qt headless unless a platform is already chosen."""

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
