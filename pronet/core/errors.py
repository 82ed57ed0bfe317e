"""
Request-level failures.
Each error carries the classification and HTTP status reported to callers.
"""

from typing import Dict, Optional


class ProNetError(Exception):

    error_type = 'scan_failed'
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict:
        data = {
            'error': self.error_type,
            'message': self.message,
        }
        if self.details:
            data['details'] = self.details
        return data


class InvalidInputError(ProNetError):
    error_type = 'invalid_input'
    status_code = 400


class UpstreamFetchError(ProNetError):

    error_type = 'upstream_fetch_failed'
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message, details)
        self.status = status

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['status'] = self.status
        return data


class ScanTimeoutError(ProNetError):
    error_type = 'timeout'
    status_code = 408
