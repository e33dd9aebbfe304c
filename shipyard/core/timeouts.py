from __future__ import annotations

# Toolchain invocation, per target
BUILD_TIMEOUT_SECONDS = 20 * 60.0

# Local git queries (status, describe)
GIT_TIMEOUT_SECONDS = 30.0

# Release API calls (lookup, create, list assets)
GH_TIMEOUT_SECONDS = 60.0

# One asset upload; archives can be tens of MB
GH_UPLOAD_TIMEOUT_SECONDS = 10 * 60.0

# Transient release API failure retry policy
GH_RETRY_ATTEMPTS = 3
GH_RETRY_DELAY_SECONDS = 1.0

# Container runtime
DOCKER_BUILD_TIMEOUT_SECONDS = 15 * 60.0
DOCKER_PUSH_TIMEOUT_SECONDS = 10 * 60.0
DOCKER_MANIFEST_TIMEOUT_SECONDS = 2 * 60.0

DEFAULT_JOBS = 4
