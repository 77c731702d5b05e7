"""
Core modules for huiben.

This package contains the client-side orchestration logic:
- Runtime configuration and the shared domain model
- Transport dispatch (embedded command host or HTTP server)
- Provider configuration, binding reconciliation and the reference library
- Generation parameter translation and export of results
"""
