"""
ext_tests — external integration tests for the Solidity compiler.

Clone third-party projects, point their Truffle / Hardhat configuration at a
locally built solc, compile + test them per settings preset, and check that
the produced artifacts record the expected compiler version.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "ext_tests"
RUNNER_VERSION = "v1"
SCHEMA_VERSION = "0.1"

# Redis contract shared by the API (producer) and the worker (consumer)
QUEUE_NAME = "ext_tests:queue"
JOB_KEY_PREFIX = "ext_tests:job:"
JOB_TYPE = "external_test"


def job_key(job_id: str) -> str:
    return f"{JOB_KEY_PREFIX}{job_id}"
