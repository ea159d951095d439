#!/usr/bin/env python3
"""
Earth Engine session setup.
"""

from typing import Optional

import ee
from loguru import logger


def init_ee(project: Optional[str] = None) -> None:
    """Initialize Earth Engine, authenticating once if no credentials are stored."""
    try:
        ee.Initialize(project=project)
    except Exception as e:
        logger.warning(f"Earth Engine initialization failed ({e}), authenticating")
        ee.Authenticate()
        ee.Initialize(project=project)
    logger.debug(f"Earth Engine initialized (project={project or 'default'})")
