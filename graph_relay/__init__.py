"""Meta webhook receiver and OAuth relay.

This package provides:
- Signed webhook ingestion for the facebook, instagram and threads channels
- The OAuth code exchange and long-lived token upgrade
- Instagram business account resolution, profile and insights reports
"""

__version__ = "0.1.0"
