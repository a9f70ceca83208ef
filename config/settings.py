"""Central configuration loader for the MakalahAI writing assistant."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
PROJECT_ROOT = Path(__file__).parent.parent
SCHEMAS_DIR = PROJECT_ROOT / "config" / "schemas"
SAMPLES_DIR = PROJECT_ROOT / "config" / "samples"
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(PROJECT_ROOT / "output")))
CHECKPOINT_DIR = OUTPUT_DIR / "checkpoints"
EXPORT_DIR = OUTPUT_DIR / "exports"

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Schema file paths
OUTLINE_SCHEMA = SCHEMAS_DIR / "outline.schema.json"
DOCUMENT_SCHEMA = SCHEMAS_DIR / "document.schema.json"
PLAGIARISM_SCHEMA = SCHEMAS_DIR / "plagiarism.schema.json"

SAMPLE_DOCUMENT = SAMPLES_DIR / "sample_document.json"

# Export
UNGENERATED_PLACEHOLDER = "Content not generated yet."

# LLM configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_ENABLED = os.getenv("LLM_ENABLED", "true").lower() in ("true", "1", "yes")

# Upper bound for a single outline/abstract/chunk call, in seconds
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "90"))

# Builder sessions kept in memory; the least recently used idle ones are dropped
MAX_LIVE_SESSIONS = int(os.getenv("MAX_LIVE_SESSIONS", "100"))

# Usage policy (guest trial + token balance)
GUEST_FREE_USES = int(os.getenv("GUEST_FREE_USES", "2"))
DEFAULT_TOKENS = int(os.getenv("DEFAULT_TOKENS", "3"))
AD_REWARD_TOKENS = int(os.getenv("AD_REWARD_TOKENS", "5"))
