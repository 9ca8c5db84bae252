"""
Retry policy for flaky external operations

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step: float = 1.0) -> Callable[[int], float]:
    """Delay of attempt * step seconds after a failed attempt (1-based)"""

    def backoff(attempt: int) -> float:
        return attempt * step

    return backoff


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def run(
        self,
        operation: Callable[[int], T],
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        label: str = "operation",
    ) -> T:
        """
        Call operation(attempt) until it returns or attempts are exhausted.

        Only the last attempt's exception is re-raised.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation(attempt)
            except retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    f"[RETRY] {label} attempt {attempt}/{self.max_attempts} failed: {e}; "
                    f"retrying in {delay:g}s"
                )
                self.sleep(delay)
        # max_attempts >= 1 guarantees the loop returns or raises
        raise AssertionError("unreachable")
