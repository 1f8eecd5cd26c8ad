# ============================================================================
# STRUCTURED LOGGING TESTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Tests - Log context and formatters
# PURPOSE: Verify context nesting, task isolation and JSON output
# CREATED: 16 OCT 2026
# ============================================================================
"""
Structured Logging Tests

Covers:
1. log_context nesting and restoration
2. Context isolation between concurrent asyncio tasks
3. StructuredFormatter / HumanFormatter output

Run with:
    pytest tests/test_logging.py -v
"""

import asyncio
import json
import logging

from core.logging import (
    HumanFormatter,
    StructuredFormatter,
    get_current_context,
    log_context,
)


def _record(message="hello"):
    return logging.LogRecord("forge.test", logging.INFO, __file__, 10, message, None, None)


class TestLogContext:

    def test_nesting(self):
        with log_context(job_id="build-1"):
            with log_context(stage="validating", attempt=2) as inner:
                assert inner.job_id == "build-1"
                assert inner.stage == "validating"
                assert inner.extra == {"attempt": 2}
            assert get_current_context().stage is None
        assert get_current_context().job_id is None

    def test_tasks_do_not_share_context(self):
        async def job(job_id, seen):
            with log_context(job_id=job_id):
                await asyncio.sleep(0.01)
                seen.append((job_id, get_current_context().job_id))

        async def run():
            seen = []
            await asyncio.gather(job("a", seen), job("b", seen))
            return seen

        assert sorted(asyncio.run(run())) == [("a", "a"), ("b", "b")]


class TestFormatters:

    def test_json_includes_context(self):
        with log_context(job_id="build-1", stage="generating-schema"):
            line = StructuredFormatter(include_source=False).format(_record())

        body = json.loads(line)
        assert body["message"] == "hello"
        assert body["level"] == "INFO"
        assert body["context"] == {"job_id": "build-1", "stage": "generating-schema"}
        assert "source" not in body

    def test_human_inline_context(self):
        with log_context(job_id="build-1", task_id="task-9"):
            line = HumanFormatter().format(_record())

        assert "[job=build-1, task=task-9]" in line
        assert line.endswith("forge.test [job=build-1, task=task-9]: hello")
