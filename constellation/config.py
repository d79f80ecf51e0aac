import os

# configuration via env vars
RUN_PATH = os.environ.get("CONSTELLATION_RUN_PATH", "/run")
CONSTELLATION_IMPORTS = [
    name.strip()
    for name in os.environ.get("CONSTELLATION_IMPORTS", "").split(",")
    if name.strip()
]
LOG_LEVEL = os.environ.get("CONSTELLATION_LOG_LEVEL", "INFO").upper()

CONSTELLATION_BETA_PREFIX = "__CONSTELLATION_BETA__"
