# Infrastructure Adapters Package
from .openai_content import OpenAIContentAdapter
from .sql_store import SqlStore

__all__ = ["SqlStore", "OpenAIContentAdapter"]
