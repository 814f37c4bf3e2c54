"""
Medication Interaction Engine - Configuration Settings
"""
import os

# API Settings
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
API_TITLE = "Medication Interaction Engine"
API_VERSION = "1.0.0"

# Text-completion collaborator (OpenAI-compatible chat completions)
LLM_API_URL = os.getenv("LLM_API_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1000"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# Interaction checking
FALLBACK_MIN_RULE_HITS = 3   # below this many rule hits the model fallback runs
ALIAS_MIN_LENGTH = 3         # shortest name considered for alias substring matching

# Optional curated dataset override (JSON, CSV or Excel)
KNOWLEDGE_BASE_PATH = os.getenv("KNOWLEDGE_BASE_PATH", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Feature Flags
ENABLE_MODEL_FALLBACK = os.getenv("ENABLE_MODEL_FALLBACK", "true").lower() == "true"
