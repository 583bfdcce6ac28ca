"""
Configuration module for the realtime meeting agent.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based configuration.

Key components:
- constants: Defines application-wide constants used across modules, including
  default model and persona settings, negotiation timeouts and the recorder
  retry budget.
- logging_config: Provides a consistent logging infrastructure with support for
  console and file-based logging with rotation capabilities.

Usage examples:
```python
from meeting_agent.config.constants import LOGGER_NAME, DEFAULT_REALTIME_MODEL
from meeting_agent.config.logging_config import configure_logging

logger = configure_logging()
logger.info("Application started")
```
"""
