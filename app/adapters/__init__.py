"""
app/adapters package marker.
"""

from app.adapters.base import IngestClock, SourceAdapter
from app.adapters.crm_adapter import CRMRawData, GenericCRMAdapter
from app.adapters.csv_adapter import CSVAdapter, CSVRawData, parse_csv
from app.adapters.http import ConnectorRequestError, HTTPSourceClient, SourceAuth
from app.adapters.registry import AdapterRegistry
from app.adapters.rows_adapter import RowListAdapter
from app.adapters.sheets_adapter import GoogleSheetsAdapter, SheetsRawData

__all__ = [
    "AdapterRegistry",
    "CRMRawData",
    "CSVAdapter",
    "CSVRawData",
    "ConnectorRequestError",
    "GenericCRMAdapter",
    "GoogleSheetsAdapter",
    "HTTPSourceClient",
    "IngestClock",
    "RowListAdapter",
    "SheetsRawData",
    "SourceAuth",
    "SourceAdapter",
    "parse_csv",
]
