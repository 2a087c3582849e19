# =============================================================================
# Django Project Configuration Package
# =============================================================================
# This package contains the settings module for the subscription backend.
# There is no HTTP surface or task queue configured here; the domain apps
# expose async service APIs that callers invoke per request.
# =============================================================================
