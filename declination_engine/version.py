# declination_engine/version.py
import os

# Reported by /api/health and the root route; ASTRO_VERSION pins it for preview deploys
VERSION = os.getenv("ASTRO_VERSION", "0.1.0")
