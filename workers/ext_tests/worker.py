"""
External test worker — ext_tests v1

Consumes external test jobs from a Redis queue and executes them.
Writes one external_test_report.json per job and records the job status
in Redis so the API can answer status queries.
"""
import json
import logging
import os
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional

import redis
from pydantic import ValidationError

from ext_tests import JOB_TYPE, QUEUE_NAME, job_key
from ext_tests.errors import ExternalTestFailure
from ext_tests.io.schema import ProjectDefinition
from ext_tests.policy.profile import Profile
from ext_tests.runner import run_external_test

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("ext_tests_worker")


class ExternalTestWorker:
    """
    Worker that pulls external test jobs from Redis and executes them.
    Reports are written to disk; status lives in Redis.
    """

    def __init__(
        self,
        redis_host: str = "redis",
        redis_port: int = 6379,
        redis_db: int = 0,
        workspace_root: str = "/tmp/ext_tests",
        artifacts_path: str = "/files/artifacts",
        profile: Optional[Profile] = None,
    ):
        self.redis_host = redis_host
        self.redis_port = redis_port
        self.redis_db = redis_db
        self.workspace_root = Path(workspace_root)
        self.artifacts_path = Path(artifacts_path)
        self.profile = profile or Profile.from_env()

        self.redis_client: Optional[redis.Redis] = None

    def connect(self):
        """Establish the Redis connection."""
        logger.info("Connecting to Redis...")
        self.redis_client = redis.Redis(
            host=self.redis_host,
            port=self.redis_port,
            db=self.redis_db,
            decode_responses=True,
        )
        self.redis_client.ping()
        logger.info("Redis connected")

    def run(self):
        """Main worker loop — blocking pop from the Redis queue."""
        self.connect()
        logger.info("External test worker started, waiting for jobs...")

        while True:
            try:
                if self.redis_client is None:
                    raise RuntimeError("Redis client not connected")

                result = self.redis_client.blpop([QUEUE_NAME], timeout=5)
                if result is None:
                    continue

                _, job_data = result  # type: ignore
                self.handle_message(job_data)

            except KeyboardInterrupt:
                logger.info("Worker shutting down...")
                break
            except Exception as e:
                logger.error(f"Error in worker loop: {e}", exc_info=True)
                time.sleep(5)

    # -----------------------------------------------------------------
    # Job processing
    # -----------------------------------------------------------------

    def handle_message(self, job_data: str) -> Optional[str]:
        """Decode one queue entry and process it; returns the final status."""
        job = json.loads(job_data)

        job_type = job.get("job_type", "")
        if job_type != JOB_TYPE:
            logger.warning(f"Unknown job type '{job_type}', skipping")
            return None

        logger.info(f"Received external test job: {job['job_id']}")
        return self.process_external_test(job)

    def report_dir(self, job_id: str) -> Path:
        return self.artifacts_path / "external_tests" / job_id

    def _set_status(self, job_id: str, status: str, **extra):
        if self.redis_client is None:
            return
        payload = {"job_id": job_id, "status": status, **extra}
        self.redis_client.set(job_key(job_id), json.dumps(payload))

    def process_external_test(self, job: dict) -> str:
        """
        Process an external test job:
          1. Validate the project definition
          2. Run every selected preset
          3. Record the status (the report is written by the runner)
        """
        job_id = job["job_id"]
        self._set_status(job_id, "RUNNING")

        try:
            project = ProjectDefinition.model_validate(job["project"])
        except ValidationError as e:
            logger.error(f"Invalid project definition in job {job_id}: {e}")
            self._set_status(job_id, "FAILED", error=str(e))
            return "FAILED"

        profile = self.profile
        if job.get("compile_only") and not profile.compile_only:
            profile = replace(profile, compile_only=True)

        output_dir = self.report_dir(job_id)
        logger.info(f"Starting external test: {project.name} (job_id={job_id})")

        try:
            report = run_external_test(
                project,
                job["binary_type"],
                job["binary_path"],
                presets=job.get("presets"),
                profile=profile,
                output_dir=output_dir,
                workspace_root=self.workspace_root,
            )
        except (ExternalTestFailure, ValueError) as e:
            logger.error(f"External test {project.name} failed: {e}")
            self._set_status(job_id, "FAILED", error=str(e), report_dir=str(output_dir))
            return "FAILED"
        except Exception as e:
            logger.error(f"External test {project.name} crashed: {e}", exc_info=True)
            self._set_status(job_id, "FAILED", error=f"{type(e).__name__}: {e}",
                             report_dir=str(output_dir))
            return "FAILED"

        status = report.status.value
        self._set_status(job_id, status, report_dir=str(output_dir))
        logger.info(
            f"External test complete: {project.name}, "
            f"status={status}, presets={len(report.runs)}"
        )
        return status


# =============================================================================
# Entry point
# =============================================================================

if __name__ == "__main__":
    worker = ExternalTestWorker(
        redis_host=os.getenv("REDIS_HOST", "redis"),
        redis_port=int(os.getenv("REDIS_PORT", "6379")),
        redis_db=int(os.getenv("REDIS_DB", "0")),
        workspace_root=os.getenv("EXT_TEST_WORKSPACE", "/tmp/ext_tests"),
        artifacts_path=os.getenv("ARTIFACTS_PATH", "/files/artifacts"),
    )
    worker.run()
