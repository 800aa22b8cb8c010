"""Constants for hawser."""

import platform

# Version
HAWSER_VERSION = "0.1.0"

# Project marker directory
HAWSER_DIR = ".hawser"

# Configuration files (inside HAWSER_DIR)
CONFIG_FILE = "config.yaml"
OBJECTS_DIR = "objects"

# Media types
MEDIA_TYPE = "application/vnd.git-media"
META_MEDIA_TYPE = MEDIA_TYPE + "+json; charset=utf-8"

# Hypermedia relations
UPLOAD_REL = "upload"
VERIFY_REL = "verify"

# Environment variables
ENDPOINT_ENV = "HAWSER_ENDPOINT"
USERNAME_ENV = "HAWSER_USERNAME"
PASSWORD_ENV = "HAWSER_PASSWORD"
TRACE_ENV = "HAWSER_TRACE"

# Placeholder recorded instead of secret header values
REDACTED = "--"

USER_AGENT = (
    f"hawser/{HAWSER_VERSION} "
    f"({platform.system().lower()}; {platform.machine()}; python {platform.python_version()})"
)
