# Keep these EXACTLY aligned with types.Brief field names

BRIEF_FIELDS = [
    "business_problem",
    "business_objective",
    "research_objective",
    "knowledge_gap",
    "target_audience",
]

FIELD_LABELS = {
    "business_problem": "Business Problem",
    "business_objective": "Business Objective",
    "research_objective": "Research Objective",
    "knowledge_gap": "Knowledge Gap",
    "target_audience": "Target Audience",
}

# Upstream extraction responses use these spellings
FIELD_ALIASES = {
    "businessProblem": "business_problem",
    "businessObjective": "business_objective",
    "researchObjective": "research_objective",
    "knowledgeGap": "knowledge_gap",
    "targetAudience": "target_audience",
}

PHASE_ORDER = [
    "problem",
    "objective",
    "research_objective",
    "audience",
    "gap",
    "knowledge_check",
    "review",
    "done",
]

INITIAL_PHASE = "problem"
TERMINAL_PHASE = "done"

STATUS_DRAFT = "draft"
STATUS_COMPLETE = "complete"

UNTITLED_BRIEF = "Untitled Brief"
TITLE_MAX_CHARS = 50

STORAGE_KEY = "briefing-agent-briefs"

EXTRACTION_MAX_CHARS = 8000
KNOWLEDGE_QUERY_MAX_CHARS = 500
EXTRACTED_PREVIEW_CHARS = 100

# seconds between the knowledge-check findings and the review summary
REVIEW_FOLLOWUP_DELAY_SEC = 0.5
