import os

from dotenv import load_dotenv

load_dotenv(os.getenv("ENV_FILE"), override=True)

# General
PRODUCT = os.getenv("PRODUCT", "lesson-judge")
VERSION = os.environ.get("VERSION", "0")
ENV = os.getenv("ENV", "stg")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")

BASE_PATH = os.path.dirname(os.path.realpath(__file__))

# Model judge
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
JUDGE_MODELS = [
    model.strip()
    for model in os.getenv("JUDGE_MODELS", f"{LLM_MODEL},gpt-4.1-mini,gpt-4.1").split(",")
    if model.strip()
]
JUDGE_TEMPERATURE = float(os.getenv("JUDGE_TEMPERATURE", "0.1"))
JUDGE_MAX_TOKENS = int(os.getenv("JUDGE_MAX_TOKENS", "4096"))
OPENAI_API_KEY_SET = bool(os.getenv("OPENAI_API_KEY"))
