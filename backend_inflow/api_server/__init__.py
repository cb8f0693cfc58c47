"""
API server package — HTTP interface over the scan status.

Exposes the current lifetime-inbound status and an on-demand refresh
trigger. Delegates all work to the ScanCoordinator.
"""
