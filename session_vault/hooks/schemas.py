from pydantic import BaseModel, ConfigDict, Field

# --- Input Schemas ---


class HookInput(BaseModel):
    """Common fields of every hook payload. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(..., description="The unique session identifier.")
    transcript_path: str = Field("", description="Path to the session transcript JSONL.")
    cwd: str = Field("", description="Working directory of the assistant.")
    hook_event_name: str | None = None


class PromptInput(HookInput):
    """UserPromptSubmit payload."""

    prompt: str = ""


class StopInput(HookInput):
    """Stop payload."""

    stop_hook_active: bool = False
