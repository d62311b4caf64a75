"""Configuration constants for task extraction and scheduling."""

import os

# Extraction
MIN_CONFIDENCE_THRESHOLD = 0.3
MAX_CANDIDATES_PER_MESSAGE = 3
MIN_TASK_TEXT_LENGTH = 4
MAX_TASK_TEXT_LENGTH = 199
CONTEXT_WINDOW_CHARS = 50  # characters kept on each side of a match
DATE_MATCH_CONFIDENCE = 0.7

# Missed-task suggestions (moderate confidence only)
MISSED_TASK_MIN_CONFIDENCE = 0.4
MISSED_TASK_MAX_CONFIDENCE = 0.7

# Template matching
MAX_TEMPLATE_SUGGESTIONS = 2
DEFAULT_RELATED_TASKS_LIMIT = 3
RELATED_SIMILARITY_THRESHOLD = 0.3
SIMILAR_CONTENT_THRESHOLD = 0.5
CATEGORY_MATCH_BONUS = 0.2
CONTEXT_RELEVANCE_THRESHOLD = 30

# Learning model
LEARNING_WINDOW_SIZE = 20
TEMPLATE_MIN_SAMPLES = 3
TEMPLATE_CONFIDENCE_DIVISOR = 10
TEMPLATE_MAX_CONFIDENCE = 1.0
CATEGORY_MIN_SAMPLES = 5
CATEGORY_CONFIDENCE_DIVISOR = 15
CATEGORY_MAX_CONFIDENCE = 0.8

# Store
DEFAULT_CLEANUP_DAYS = 30
TASK_ID_PREFIX = "task_"
EXPORT_VERSION = "2.0"

# Storage Configuration
DEFAULT_DATABASE_PATH = os.path.expanduser("~/.task-assist/tasks.db")
DEFAULT_WAL_MODE = True

# Database Schema Version
SCHEMA_VERSION = 1

# MCP Server Configuration
DEFAULT_MCP_HOST = "localhost"
DEFAULT_MCP_PORT = 3000
DEFAULT_MCP_SERVER_NAME = "task-assist"
