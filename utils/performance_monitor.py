"""
Performance Monitor
Tracks test execution times, identifies bottlenecks and flaky tests.
"""
import json
import logging
import os
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Dict, List, Optional

from utils.config import FAST_TEST_THRESHOLD, SLOW_TEST_THRESHOLD

logger = logging.getLogger(__name__)


@dataclass
class TestPerformance:
    __test__ = False

    nodeid: str
    title: str
    suite: str
    duration: float
    status: str
    attempt: int = 0
    timestamp: float = 0.0


class PerformanceMonitor:
    """Collects one entry per executed test attempt."""

    def __init__(self, slow_threshold: float = SLOW_TEST_THRESHOLD, fast_threshold: float = FAST_TEST_THRESHOLD):
        self.slow_threshold = slow_threshold
        self.fast_threshold = fast_threshold
        self._results: List[TestPerformance] = []
        self._lock = threading.Lock()

    def record(self, nodeid: str, title: str, suite: str, duration: float, status: str, attempt: int = 0) -> None:
        entry = TestPerformance(
            nodeid=nodeid,
            title=title,
            suite=suite or "Unknown",
            duration=float(duration or 0.0),
            status=status.lower(),
            attempt=attempt,
            timestamp=time.time(),
        )
        with self._lock:
            self._results.append(entry)

    @property
    def results(self) -> List[TestPerformance]:
        with self._lock:
            return list(self._results)

    def flaky_tests(self) -> List[str]:
        """Node ids that both failed and passed during this run."""
        outcomes: Dict[str, set] = {}
        for r in self.results:
            outcomes.setdefault(r.nodeid, set()).add(r.status)
        return sorted(nodeid for nodeid, seen in outcomes.items() if {"passed", "failed"} <= seen)

    def generate_report(self) -> Dict:
        results = self.results
        total = len(results)
        total_duration = sum(r.duration for r in results)

        slow_tests = sorted(
            (r for r in results if r.duration > self.slow_threshold), key=lambda r: r.duration, reverse=True
        )[:10]
        fast_tests = sorted((r for r in results if r.duration < self.fast_threshold), key=lambda r: r.duration)[:10]

        by_suite: Dict[str, Dict[str, float]] = {}
        for r in results:
            suite = by_suite.setdefault(r.suite, {"count": 0, "totalDuration": 0.0, "averageDuration": 0.0})
            suite["count"] += 1
            suite["totalDuration"] += r.duration
        for suite in by_suite.values():
            suite["averageDuration"] = suite["totalDuration"] / suite["count"]

        return {
            "timestamp": datetime.now().isoformat(),
            "totalTests": total,
            "passed": sum(1 for r in results if r.status == "passed"),
            "failed": sum(1 for r in results if r.status == "failed"),
            "skipped": sum(1 for r in results if r.status == "skipped"),
            "averageDuration": total_duration / total if total else 0.0,
            "slowTests": [asdict(r) for r in slow_tests],
            "fastTests": [asdict(r) for r in fast_tests],
            "flakyTests": self.flaky_tests(),
            "bySuite": by_suite,
        }

    def get_stats(self) -> Dict:
        results = self.results
        if not results:
            return {
                "totalTests": 0,
                "averageDuration": 0.0,
                "slowTestCount": 0,
                "fastestTest": None,
                "slowestTest": None,
            }
        ordered = sorted(results, key=lambda r: r.duration)
        return {
            "totalTests": len(results),
            "averageDuration": sum(r.duration for r in results) / len(results),
            "slowTestCount": sum(1 for r in results if r.duration > self.slow_threshold),
            "fastestTest": ordered[0],
            "slowestTest": ordered[-1],
        }

    def save_report(self, output_dir: str) -> Optional[str]:
        """Write a timestamped JSON report plus latest-performance.json. Returns the timestamped path."""
        report = self.generate_report()
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, f"performance-{int(time.time() * 1000)}.json")
        payload = json.dumps(report, indent=2)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(payload)
        with open(os.path.join(output_dir, "latest-performance.json"), "w", encoding="utf-8") as f:
            f.write(payload)

        logger.info(f"Performance report saved to: {filepath}")
        logger.info(f"   Total tests: {report['totalTests']}")
        logger.info(f"   Average duration: {report['averageDuration']:.2f}s")
        logger.info(f"   Slow tests (>{self.slow_threshold:.0f}s): {len(report['slowTests'])}")
        for i, test in enumerate(report["slowTests"][:5], 1):
            logger.info(f"   {i}. {test['title']} ({test['duration']:.2f}s)")
        if report["flakyTests"]:
            logger.warning(f"   Flaky tests: {', '.join(report['flakyTests'])}")
        return filepath

    def clear(self) -> None:
        with self._lock:
            self._results.clear()
