# ============================================================================
# VERSION - CLAIM WORKFLOW ORCHESTRATOR
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# ============================================================================
"""
Version information for the Claim Workflow Orchestrator.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.2 - portal submissions retried end to end
__version__ = "0.2.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-19"

EPOCH = 1
CODENAME = "Claim Workflow Orchestrator"
