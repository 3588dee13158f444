from .thumbnail import (
    GenaiTestRequest,
    GenaiTestResponse,
    QuestionnaireResponses,
    RewritePromptRequest,
    RewritePromptResponse,
    SlotError,
    SlotStatus,
    ThumbnailRequestPayload,
    ThumbnailSetResponse,
    ThumbnailSetStatus,
    ThumbnailSlot,
    ThumbnailVariant,
)
