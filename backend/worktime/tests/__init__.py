"""
Test package for the worktime data layer.

This package contains test suites for:
- Field encryption and key resolution
- Backend adapters and store selection
- Multi-tenant data isolation
- Time log recording and listing
- The approval workflow, single and bulk
- Sync reads and the HTTP boundary
"""
