"""
JSON export functionality.
Writes a scan result, with a small summary block, to a user-chosen file.
"""

import json
import os
from collections import Counter
from datetime import datetime
from typing import Dict

from pronet.core.logger import logger
from pronet.models import ScanResult


class JSONExporter:

    def build_report(self, result: ScanResult) -> Dict:
        return {
            'meta': {
                'url': result.url,
                'mode': result.mode,
                'scan_time': datetime.now().isoformat(),
                'tool': 'ProNetAnalyzer',
                'version': '4.0.0'
            },
            'summary': self._generate_summary(result),
            'result': result.to_dict()
        }

    def _generate_summary(self, result: ScanResult) -> Dict:
        if result.is_content:
            by_signal = Counter(item.signal.value for item in result.items)
            return {
                'total_items': len(result.items),
                'by_signal': dict(by_signal)
            }

        by_category = Counter(item.category.value for item in result.items)
        by_method = Counter(item.method for item in result.items)
        return {
            'total_items': len(result.items),
            'by_category': dict(by_category),
            'by_method': dict(by_method),
            'dynamic_error': result.page_info.error if result.page_info else None
        }

    def export(self, result: ScanResult, output_file: str) -> str:
        report = self.build_report(result)

        target_dir = os.path.dirname(os.path.abspath(output_file))
        os.makedirs(target_dir, exist_ok=True)

        with open(output_file, 'w') as f:
            json.dump(report, f, indent=2)

        logger.info(f"Report exported to {output_file}")

        return output_file
