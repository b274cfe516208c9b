from __future__ import annotations

# Builds and registry publishes carry no orchestrator deadline; whatever the
# external tool imposes applies.
BUILD_TIMEOUT_SECONDS: float | None = None
PUBLISH_TIMEOUT_SECONDS: float | None = None

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0
GH_UPLOAD_TIMEOUT_SECONDS = 15 * 60.0

# Object storage (aws s3api)
STORAGE_HEAD_TIMEOUT_SECONDS = 60.0
STORAGE_PUT_TIMEOUT_SECONDS = 15 * 60.0

# Registry index reads and webhook delivery
HTTP_TIMEOUT_SECONDS = 30.0
