# Services are imported by module path so the openai / google-genai SDKs load
# only when a client is actually built:
# from services.completion_client import RetryingCompletionClient
# from services.thumbnail_set import generate_thumbnail_set

__all__ = []
