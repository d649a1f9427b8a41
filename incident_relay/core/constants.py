"""Application-wide constants."""

# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
DEFAULT_IDLE_THRESHOLD_SECONDS = 3600.0  # 1 hour
DEFAULT_REAP_INTERVAL_SECONDS = 60.0
WEBHOOK_DRAIN_TIMEOUT_SECONDS = 10.0

# ---------------------------------------------------------------------------
# Prompts + payloads
# ---------------------------------------------------------------------------
SUMMARY_PLACEHOLDER = "{summary}"
TRANSCRIPTION_PLACEHOLDER = "{transcription}"
DEFAULT_WEBHOOK_TEMPLATE = '{"summary":"{summary}"}'

# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OLLAMA_BASE_URL = "http://localhost:11434"
LOCAL_BASE_URL = "http://localhost:8080/v1"
AZURE_DEFAULT_API_VERSION = "2023-09-15-preview"
CHAT_COMPLETIONS_SUFFIX = "/chat/completions"

# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------
DEFAULT_WHISPER_MODEL = "whisper-large-v3-turbo"
