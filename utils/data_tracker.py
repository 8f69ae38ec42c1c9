"""
Test Data Tracker
Tracks every record a test creates in the application so teardown can delete it.

Resources are grouped by test id and kept in creation order. Memory is bounded:
the oldest test ids are evicted past MAX_TEST_IDS and a test cannot track more
than MAX_RESOURCES_PER_TEST records.
"""
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

from utils.errors import UnknownResourceTypeError
from utils.config import MAX_RESOURCES_PER_TEST, MAX_TEST_IDS

logger = logging.getLogger(__name__)


class ResourceType(str, Enum):
    JOB_POSTING = "jobPosting"
    APPLICANT = "applicant"
    INTERVIEW = "interview"

    @classmethod
    def parse(cls, value: Union["ResourceType", str]) -> "ResourceType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            known = ", ".join(t.value for t in cls)
            raise UnknownResourceTypeError(f"Unknown resource type '{value}' (expected one of: {known})") from None


@dataclass(frozen=True)
class TrackedResource:
    test_id: str
    resource_type: ResourceType
    # Title, name or email - whatever the page objects can look the record up by
    identifier: str
    metadata: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.resource_type.value}({self.identifier})"


class TestDataTracker:
    """Records created resources per test id, in insertion order."""

    __test__ = False  # not a pytest test class

    def __init__(self, max_test_ids: int = MAX_TEST_IDS, max_resources_per_test: int = MAX_RESOURCES_PER_TEST):
        self.max_test_ids = max_test_ids
        self.max_resources_per_test = max_resources_per_test
        self._resources: "OrderedDict[str, List[TrackedResource]]" = OrderedDict()
        self._lock = threading.Lock()

    def record(self, test_id: str, resource_type: Union[ResourceType, str], identifier: str,
               metadata: Optional[Dict[str, str]] = None) -> Optional[TrackedResource]:
        """
        Track a resource created during test execution.

        Duplicates are allowed; each one gets its own deletion attempt.
        Returns the tracked resource, or None when the per-test limit dropped it.
        """
        resource = TrackedResource(
            test_id=test_id,
            resource_type=ResourceType.parse(resource_type),
            identifier=str(identifier),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            resources = self._resources.get(test_id)
            if resources is None:
                resources = self._resources[test_id] = []
                self._evict_if_needed()
            if len(resources) >= self.max_resources_per_test:
                logger.warning(
                    f"Tracker limit reached for test {test_id} ({self.max_resources_per_test}), "
                    f"not tracking {resource}"
                )
                return None
            resources.append(resource)
        logger.debug(f"Tracked {resource} for test {test_id}")
        return resource

    def drain(self, test_id: str) -> List[TrackedResource]:
        """Return the resources of `test_id` in creation order and forget them."""
        with self._lock:
            return self._resources.pop(test_id, [])

    def get_tracked(self, test_id: str) -> List[TrackedResource]:
        with self._lock:
            return list(self._resources.get(test_id, []))

    def test_ids(self) -> List[str]:
        with self._lock:
            return list(self._resources)

    def clear(self, test_id: str) -> None:
        with self._lock:
            self._resources.pop(test_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._resources.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(r) for r in self._resources.values())

    def _evict_if_needed(self) -> None:
        while len(self._resources) > self.max_test_ids:
            oldest, dropped = self._resources.popitem(last=False)
            logger.warning(f"Evicted {len(dropped)} tracked resource(s) of test {oldest} (tracker full)")
