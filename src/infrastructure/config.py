"""
Application configuration - loads from YAML param files.

CONFIGURATION POLICY:
====================
Configuration is loaded from config/param.yaml, config/models.yaml and
config/agents.yaml. Secrets (API keys, database URL) live ONLY in .env
and are loaded via os.getenv().

Supports multiple LLM providers through OpenAI-compatible endpoints:
- OpenAI (direct)
- OpenRouter (unified multi-provider access)
- Groq (direct)
"""

from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml
from loguru import logger

# ========================================
# Project Paths
# ========================================

# Get project root (parent of src/infrastructure/)
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_CONFIG_DIR = Path(os.getenv("AGENT_CONFIG_DIR", _PROJECT_ROOT / "config"))

# ========================================
# YAML Config Loading
# ========================================


def _load_yaml(filename: str) -> Dict[str, Any]:
    """Load a YAML config file."""
    filepath = _CONFIG_DIR / filename
    if not filepath.exists():
        return {}
    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _get_nested(d: Dict, *keys, default=None):
    """Get nested dictionary value safely."""
    for key in keys:
        if isinstance(d, dict):
            d = d.get(key, default)
        else:
            return default
    return d if d is not None else default


# Load configs
_PARAMS = _load_yaml("param.yaml")
_MODELS = _load_yaml("models.yaml")

# ========================================
# Provider Configuration
# ========================================

PROVIDER = _get_nested(_PARAMS, "provider", "default", default="openai")
OPENROUTER_BASE_URL = _get_nested(_PARAMS, "provider", "openrouter_base_url",
                                  default="https://openrouter.ai/api/v1")
GROQ_BASE_URL = _get_nested(_PARAMS, "provider", "groq_base_url",
                            default="https://api.groq.com/openai/v1")

# ========================================
# Routing Configuration
# ========================================

DEFAULT_AGENT_NAME = _get_nested(_PARAMS, "routing", "default_agent", default="Cheapest")
MAX_ROUTING_ATTEMPTS = _get_nested(_PARAMS, "routing", "max_routing_attempts", default=3)
MAX_HANDOFF_HOPS = _get_nested(_PARAMS, "routing", "max_handoff_hops", default=5)

# Confidence recorded on the synthetic decision built when routing fails.
# Kept inside the 0-5 confidence scale.
FALLBACK_CONFIDENCE = float(_get_nested(_PARAMS, "routing", "fallback_confidence", default=2.5))
ROUTING_VERSION = str(_get_nested(_PARAMS, "routing", "routing_version", default="1.0"))
ROUTING_TOOL_NAME = _get_nested(_PARAMS, "routing", "routing_tool_name", default="routeToAgent")

# ========================================
# Conversation Analysis
# ========================================

ANALYSIS_MIN_MESSAGES = 1
ANALYSIS_MAX_MESSAGES = 10
ANALYSIS_DEFAULT_MESSAGE_COUNT = _get_nested(_PARAMS, "analysis", "default_message_count", default=5)

# ========================================
# Execution Defaults
# ========================================

DEFAULT_MAX_TOOL_CALLS = _get_nested(_PARAMS, "execution", "max_tool_calls", default=10)

# User-visible failure text. Never includes identifiers or error details.
APOLOGY_MESSAGE = "I apologize, but I'm experiencing technical difficulties. Please try again."

# ========================================
# Paths & Storage
# ========================================

DATA_DIR = _PROJECT_ROOT / _get_nested(_PARAMS, "paths", "data_dir", default="data")
AGENTS_FILE = _get_nested(_PARAMS, "paths", "agents_file", default="agents.yaml")

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'agents.db'}")

# ========================================
# Logging
# ========================================

LOG_LEVEL = os.getenv("LOG_LEVEL", _get_nested(_PARAMS, "logging", "level", default="INFO"))

# ========================================
# Helper Functions
# ========================================


def get_api_key(provider: Optional[str] = None) -> Optional[str]:
    """Get API key for the specified provider."""
    provider = provider or PROVIDER
    key_map = {
        "openrouter": "OPENROUTER_API_KEY",
        "openai": "OPENAI_API_KEY",
        "groq": "GROQ_API_KEY",
    }
    env_var = key_map.get(provider, f"{provider.upper()}_API_KEY")
    return os.getenv(env_var)


def get_model_catalog() -> Dict[str, Any]:
    """Return all available models from models.yaml."""
    return _MODELS


def get_agent_specs() -> List[Dict[str, Any]]:
    """Return the raw agent entries from the agents file."""
    data = _load_yaml(AGENTS_FILE)
    return list(data.get("agents") or [])


def validate() -> None:
    """
    Validate configuration and create required directories.

    Raises:
        ValueError: If required secrets are missing
        OSError: If directories cannot be created
    """
    api_key = get_api_key()
    if not api_key:
        raise ValueError(
            f" Missing required secret: {PROVIDER.upper()}_API_KEY\n"
            f"Please add it to your .env file."
        )

    if DEFAULT_AGENT_NAME not in {spec.get("name") for spec in get_agent_specs()}:
        raise ValueError(f"Default agent '{DEFAULT_AGENT_NAME}' is not defined in {AGENTS_FILE}")

    try:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    except (PermissionError, OSError) as e:
        raise OSError(f" Cannot create directory {DATA_DIR}: {e}")


def dump() -> None:
    """Print all active non-secret configuration values for debugging."""
    logger.info("\n" + "=" * 60)
    logger.info("CONFIGURATION (NON-SECRETS ONLY)")
    logger.info("=" * 60)

    logger.info("\n Provider:")
    logger.info(f"   Provider: {PROVIDER}")
    logger.info(f"   Models in catalog: {len(_MODELS)}")

    logger.info("\n Routing:")
    logger.info(f"   Default Agent: {DEFAULT_AGENT_NAME}")
    logger.info(f"   Max Routing Attempts: {MAX_ROUTING_ATTEMPTS}")
    logger.info(f"   Max Handoff Hops: {MAX_HANDOFF_HOPS}")
    logger.info(f"   Fallback Confidence: {FALLBACK_CONFIDENCE}")
    logger.info(f"   Routing Tool: {ROUTING_TOOL_NAME} (v{ROUTING_VERSION})")

    logger.info("\n Analysis:")
    logger.info(f"   Default Window: {ANALYSIS_DEFAULT_MESSAGE_COUNT} "
                f"(allowed {ANALYSIS_MIN_MESSAGES}-{ANALYSIS_MAX_MESSAGES})")

    logger.info("\n Storage:")
    logger.info(f"   Data Root: {DATA_DIR}")
    logger.info(f"   Agents File: {_CONFIG_DIR / AGENTS_FILE}")
    logger.info(f"   Database: {DATABASE_URL.split('://', 1)[0]}")

    logger.info("\n" + "=" * 60 + "\n")
