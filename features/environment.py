"""
Behave environment configuration for NetBox DNS Verify scenarios.
"""

import logging
import shutil
import tempfile
from pathlib import Path

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def before_all(context):
    """Set up test environment before all tests."""
    context.base_dir = Path(__file__).parent.parent
    logger.info("Test environment setup complete")


def before_scenario(context, scenario):
    """Set up each test scenario."""
    context.output_dir = Path(tempfile.mkdtemp(prefix="dns-verify-"))
    context.records = []
    context.answers = {}
    context.zones = []
    context.nameservers = []
    context.result = None

    logger.info(f"Starting scenario: {scenario.name}")


def after_scenario(context, scenario):
    """Clean up after each test scenario."""
    shutil.rmtree(context.output_dir, ignore_errors=True)
    logger.info(f"Completed scenario: {scenario.name}")
