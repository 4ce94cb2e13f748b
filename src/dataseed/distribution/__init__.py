"""Distribution of processed batches to engines.

This package provides:
- DistributionEngine: requirement matching, refusal and transport hand-off
- Transports: database table, HTTP endpoint, Parquet file drop
"""

from dataseed.distribution.engine import DistributionEngine
from dataseed.distribution.transports import ApiTransport, DatabaseTransport, FileTransport

__all__ = [
    "DistributionEngine",
    "ApiTransport",
    "DatabaseTransport",
    "FileTransport",
]
