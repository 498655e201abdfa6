"""LLM response schemas for structured output."""

EXERCISE_INSIGHTS_SCHEMA = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "recommended_sets": {"type": "string"},
        "recommended_reps": {"type": "string"},
        "tempo": {"type": "string"},
        "rest": {"type": "string"},
        "equipment": {"type": "string"},
        "cues": {"type": "array", "items": {"type": "string"}},
        "benefits": {"type": "array", "items": {"type": "string"}},
        "video_urls": {"type": "array", "items": {"type": "string"}},
        "safety_notes": {"type": "string"}
    },
    "required": ["description", "recommended_sets", "recommended_reps", "cues"]
}


SECTION_OVERVIEW_SCHEMA = {
    "type": "object",
    "properties": {
        "focus": {"type": "string"},
        "adaptation_goal": {"type": "string"},
        "warmup_tip": {"type": "string"}
    },
    "required": ["focus", "adaptation_goal", "warmup_tip"]
}
